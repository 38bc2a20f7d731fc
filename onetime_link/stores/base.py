"""Link store contract and the detached record type it exchanges."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID


def as_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; every value the stores write is UTC, so naive means UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


@dataclass(frozen=True)
class LinkRecord:
    id: UUID
    token: str
    created_at: dt.datetime
    expires_at: dt.datetime
    used: bool
    purpose: str
    subject_id: str | None = None

    def is_valid(self, now: dt.datetime) -> bool:
        return not self.used and now < self.expires_at

    def mark_used(self) -> LinkRecord:
        return replace(self, used=True)


class LinkStore(Protocol):
    """Persistence capability the link service is built on.

    ``conditional_mark_used`` must be atomic: among concurrent callers passing
    the same valid token, exactly one gets the record back.
    """

    def insert(self, record: LinkRecord) -> None: ...

    def find_by_token(self, token: str) -> LinkRecord | None: ...

    def conditional_mark_used(self, token: str, now: dt.datetime) -> LinkRecord | None: ...

    def delete_where_expires_before(self, now: dt.datetime) -> int: ...

    def exists_valid(self, token: str, now: dt.datetime) -> bool: ...
