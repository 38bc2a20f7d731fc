"""Thread-safe in-process link store."""

from __future__ import annotations

import datetime as dt
from threading import Lock

from onetime_link.core.exceptions import DuplicateTokenError
from onetime_link.stores.base import LinkRecord


class InMemoryLinkStore:
    """Keeps records in a dict guarded by one lock.

    Only suitable for a single process: the lock is what makes
    ``conditional_mark_used`` atomic here.
    """

    def __init__(self) -> None:
        self._records: dict[str, LinkRecord] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def insert(self, record: LinkRecord) -> None:
        with self._lock:
            if record.token in self._records:
                raise DuplicateTokenError()
            self._records[record.token] = record

    def find_by_token(self, token: str) -> LinkRecord | None:
        with self._lock:
            return self._records.get(token)

    def conditional_mark_used(self, token: str, now: dt.datetime) -> LinkRecord | None:
        with self._lock:
            record = self._records.get(token)
            if record is None or not record.is_valid(now):
                return None
            consumed = record.mark_used()
            self._records[token] = consumed
            return consumed

    def delete_where_expires_before(self, now: dt.datetime) -> int:
        with self._lock:
            expired = [token for token, record in self._records.items() if record.expires_at < now]
            for token in expired:
                del self._records[token]
            return len(expired)

    def exists_valid(self, token: str, now: dt.datetime) -> bool:
        with self._lock:
            record = self._records.get(token)
            return record is not None and record.is_valid(now)
