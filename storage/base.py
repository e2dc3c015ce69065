from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional


class StorageError(Exception):
    pass


class Storage(ABC):
    """Generic row store. Rows are plain dicts keyed by column name."""

    @abstractmethod
    def insert(self, table: str, row: dict) -> dict:
        """Insert a row and return it with its generated `id` and `created_at`."""

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Return copies of rows whose columns equal every value in `filters`."""

    @abstractmethod
    def update(self, table: str, patch: dict, filters: dict[str, Any]) -> int:
        """Apply `patch` to matching rows and return how many changed."""

    @abstractmethod
    def delete(self, table: str, filters: dict[str, Any]) -> int:
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Run a block as one atomic unit of work.

        Writes made inside the block are discarded if it raises. Nested
        calls join the outermost transaction.
        """

    def select_one(self, table: str, filters: dict[str, Any], **kwargs) -> Optional[dict]:
        rows = self.select(table, filters, limit=1, **kwargs)
        return rows[0] if rows else None

    def count(self, table: str, filters: Optional[dict[str, Any]] = None) -> int:
        return len(self.select(table, filters))
