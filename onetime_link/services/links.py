"""Service for issuing, consuming and sweeping one-time links."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import uuid4

from onetime_link.core.exceptions import DuplicateTokenError, InvalidInputError, StoreUnavailableError
from onetime_link.services.tokens import MAX_TOKEN_LENGTH, encoded_length, generate_token
from onetime_link.stores.base import LinkRecord, LinkStore, as_utc

if TYPE_CHECKING:
    from onetime_link.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION = dt.timedelta(hours=24)
DEFAULT_TOKEN_BYTES = 32
DEFAULT_MAX_ISSUE_ATTEMPTS = 3


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class LinkOptions:
    default_expiration: dt.timedelta = DEFAULT_EXPIRATION
    token_bytes: int = DEFAULT_TOKEN_BYTES
    max_issue_attempts: int = DEFAULT_MAX_ISSUE_ATTEMPTS

    def __post_init__(self) -> None:
        if self.default_expiration <= dt.timedelta(0):
            raise InvalidInputError("default_expiration_must_be_positive", field="default_expiration")
        if self.token_bytes < 1:
            raise InvalidInputError("token_bytes_must_be_positive", field="token_bytes")
        if encoded_length(self.token_bytes) > MAX_TOKEN_LENGTH:
            raise InvalidInputError("token_bytes_exceeds_column_width", field="token_bytes")
        if self.max_issue_attempts < 1:
            raise InvalidInputError("max_issue_attempts_must_be_positive", field="max_issue_attempts")

    @classmethod
    def from_settings(cls, settings: Settings) -> LinkOptions:
        return cls(
            default_expiration=dt.timedelta(hours=settings.LINK_DEFAULT_EXPIRATION_HOURS),
            token_bytes=settings.LINK_TOKEN_BYTES,
            max_issue_attempts=settings.LINK_ISSUE_MAX_ATTEMPTS,
        )


class LinkService:
    """Token lifecycle on top of a :class:`LinkStore`.

    The service keeps no state between calls; the store holds everything.
    ``consume`` relies on the store's atomic conditional update, so the
    single-use guarantee holds across threads and processes sharing a store.
    Negative outcomes of ``consume`` and ``exists`` never say why a token was
    rejected.
    """

    def __init__(
        self,
        store: LinkStore,
        options: LinkOptions | None = None,
        *,
        clock: Callable[[], dt.datetime] = _utcnow,
        token_generator: Callable[[int], str] = generate_token,
    ) -> None:
        self.store = store
        self.options = options or LinkOptions()
        self._clock = clock
        self._token_generator = token_generator

    def _now(self) -> dt.datetime:
        return as_utc(self._clock())

    def issue_record(
        self,
        subject_id: str | None,
        purpose: str,
        expiration: dt.timedelta | None = None,
    ) -> LinkRecord:
        purpose = (purpose or "").strip()
        if not purpose:
            raise InvalidInputError("purpose_required", field="purpose")
        lifetime = self.options.default_expiration if expiration is None else expiration
        if lifetime <= dt.timedelta(0):
            raise InvalidInputError("expiration_must_be_positive", field="expiration")

        attempts = self.options.max_issue_attempts
        for attempt in range(1, attempts + 1):
            created_at = self._now()
            record = LinkRecord(
                id=uuid4(),
                token=self._token_generator(self.options.token_bytes),
                created_at=created_at,
                expires_at=created_at + lifetime,
                used=False,
                purpose=purpose,
                subject_id=subject_id or None,
            )
            try:
                self.store.insert(record)
            except DuplicateTokenError:
                logger.warning("Link token collision on issue (attempt %s/%s)", attempt, attempts)
                continue
            logger.info(
                "Link issued: purpose=%s subject=%s expires_at=%s",
                record.purpose,
                record.subject_id,
                record.expires_at.isoformat(),
            )
            return record

        logger.error("Link issue failed: %s consecutive token collisions", attempts)
        raise StoreUnavailableError("token_generation_exhausted", operation="insert")

    def issue(
        self,
        base_url: str,
        subject_id: str | None,
        purpose: str,
        expiration: dt.timedelta | None = None,
    ) -> str:
        """Persist a new link and return ``base_url/<token>``."""
        base = (base_url or "").strip().rstrip("/")
        if not base:
            raise InvalidInputError("base_url_required", field="base_url")
        record = self.issue_record(subject_id, purpose, expiration)
        return f"{base}/{record.token}"

    def consume(self, token: str) -> LinkRecord | None:
        """Mark a valid token used and return it, or ``None`` if it cannot be used."""
        if not token or not token.strip():
            return None
        record = self.store.conditional_mark_used(token.strip(), self._now())
        if record is None:
            logger.warning("Link consume rejected: invalid, used or expired token")
            return None
        logger.info("Link consumed: purpose=%s subject=%s", record.purpose, record.subject_id)
        return record

    def consume_for_purpose(self, token: str, purpose: str) -> LinkRecord | None:
        # The token is spent even when the purpose does not match.
        record = self.consume(token)
        if record is None:
            return None
        if record.purpose != purpose:
            logger.warning("Link used for wrong purpose: expected=%s actual=%s", purpose, record.purpose)
            return None
        return record

    def exists(self, token: str) -> bool:
        """Whether ``token`` is currently valid.

        Not atomic with ``consume``; suitable for UI pre-checks only.
        """
        if not token or not token.strip():
            return False
        return self.store.exists_valid(token.strip(), self._now())

    def find(self, token: str) -> LinkRecord | None:
        if not token or not token.strip():
            return None
        return self.store.find_by_token(token.strip())

    def cleanup(self) -> int:
        """Delete every link whose expiry has passed, used or not."""
        removed = self.store.delete_where_expires_before(self._now())
        if removed:
            logger.info("Expired links removed: %s", removed)
        else:
            logger.debug("No expired links to remove")
        return removed
