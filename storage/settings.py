import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from core.config import Settings, get_settings

from .base import Storage

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "app_settings"


class AppSettingsProvider:
    """
    Named settings read from the `app_settings` table.

    Every lookup takes the caller's default; when none is given the value
    from `core.config.Settings` for the same key is used.
    """

    def __init__(self, storage: Storage, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()

    def _raw(self, key: str) -> Optional[str]:
        row = self.storage.select_one(SETTINGS_TABLE, {"key": key})
        if row is None or row.get("value") in (None, ""):
            return None
        return str(row["value"])

    def _fallback(self, key: str, default):
        if default is not None:
            return default
        return getattr(self.settings, key, None)

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._raw(key)
        return value if value is not None else self._fallback(key, default)

    def get_number(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        fallback = self._fallback(key, default)
        value = self._raw(key)
        if value is None:
            return Decimal(str(fallback)) if fallback is not None else Decimal("0")
        try:
            number = Decimal(value)
        except InvalidOperation:
            number = None
        if number is None or not number.is_finite():
            logger.warning(f"Setting {key!r} is not numeric ({value!r}), using default")
            return Decimal(str(fallback)) if fallback is not None else Decimal("0")
        return number

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._raw(key)
        if value is None:
            return default
        return value in ("true", "1")

    def set(self, key: str, value) -> None:
        with self.storage.transaction():
            if self.storage.update(SETTINGS_TABLE, {"value": str(value)}, {"key": key}) == 0:
                self.storage.insert(SETTINGS_TABLE, {"key": key, "value": str(value)})
