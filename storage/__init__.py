"""
Relational CRUD store used by every service.

Services only talk to the `Storage` interface:
- insert / select / update / delete on named tables
- transaction() for all-or-nothing units of work
- AppSettingsProvider for named settings with explicit defaults
"""

from .base import Storage, StorageError
from .memory import InMemoryStorage
from .settings import AppSettingsProvider

__all__ = [
    "Storage",
    "StorageError",
    "InMemoryStorage",
    "AppSettingsProvider",
]
