import copy
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional
from uuid import UUID, uuid4

from .base import Storage, StorageError


class InMemoryStorage(Storage):
    """
    Dict-backed store for tests and local runs.

    A single re-entrant lock serialises transactions, so a read-then-write
    inside `transaction()` cannot interleave with another one.
    """

    def __init__(self):
        self.tables: dict[str, dict[UUID, dict]] = defaultdict(dict)
        self._lock = threading.RLock()
        self._depth = 0

    def insert(self, table: str, row: dict) -> dict:
        with self._lock:
            data = dict(row)
            data.setdefault("id", uuid4())
            data.setdefault("created_at", datetime.now(timezone.utc))
            if data["id"] in self.tables[table]:
                raise StorageError(f"Duplicate id {data['id']} in {table}")
            self.tables[table][data["id"]] = data
            return dict(data)

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        with self._lock:
            rows = [dict(r) for r in self.tables[table].values() if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def update(self, table: str, patch: dict, filters: dict[str, Any]) -> int:
        with self._lock:
            matched = [r for r in self.tables[table].values() if self._matches(r, filters)]
            for row in matched:
                row.update(patch)
            return len(matched)

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        with self._lock:
            ids = [k for k, r in self.tables[table].items() if self._matches(r, filters)]
            for row_id in ids:
                del self.tables[table][row_id]
            return len(ids)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStorage"]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self.tables)
            self._depth = 1
            try:
                yield self
            except BaseException:
                self.tables = snapshot
                raise
            finally:
                self._depth = 0

    @staticmethod
    def _matches(row: dict, filters: Optional[dict[str, Any]]) -> bool:
        if not filters:
            return True
        return all(row.get(column) == value for column, value in filters.items())
