"""Relational link store built on SQLAlchemy sessions."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from onetime_link.core.exceptions import DuplicateTokenError, StoreUnavailableError
from onetime_link.models.link_token import LinkToken
from onetime_link.stores.base import LinkRecord, as_utc

logger = logging.getLogger(__name__)


def _to_record(row: LinkToken) -> LinkRecord:
    return LinkRecord(
        id=row.id,
        token=row.token,
        created_at=as_utc(row.created_at),
        expires_at=as_utc(row.expires_at),
        used=bool(row.used),
        purpose=row.purpose,
        subject_id=row.subject_id,
    )


def _valid_token_filter(token: str, now: dt.datetime):
    return (
        LinkToken.token == token,
        LinkToken.used == False,  # noqa: E712
        LinkToken.expires_at > now,
    )


class SqlAlchemyLinkStore:
    """Link store over any SQLAlchemy-supported database.

    Every operation runs in its own short session and transaction, so one
    instance can be shared across threads. Consumption is a single
    conditional UPDATE; the database's row locking decides the winner.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if operation == "insert":
                raise DuplicateTokenError() from exc
            logger.warning("Link store %s failed: %s", operation, exc.__class__.__name__)
            raise StoreUnavailableError(operation=operation) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Link store %s failed: %s", operation, exc.__class__.__name__)
            raise StoreUnavailableError(operation=operation) from exc
        finally:
            db.close()

    def insert(self, record: LinkRecord) -> None:
        with self._session("insert") as db:
            db.add(
                LinkToken(
                    id=record.id,
                    token=record.token,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                    used=record.used,
                    purpose=record.purpose,
                    subject_id=record.subject_id,
                )
            )
            db.flush()

    def find_by_token(self, token: str) -> LinkRecord | None:
        with self._session("find_by_token") as db:
            row = db.scalars(select(LinkToken).where(LinkToken.token == token)).first()
            return _to_record(row) if row is not None else None

    def conditional_mark_used(self, token: str, now: dt.datetime) -> LinkRecord | None:
        with self._session("conditional_mark_used") as db:
            result = db.execute(
                update(LinkToken)
                .where(*_valid_token_filter(token, now))
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            row = db.scalars(select(LinkToken).where(LinkToken.token == token)).one()
            return _to_record(row)

    def delete_where_expires_before(self, now: dt.datetime) -> int:
        with self._session("delete_where_expires_before") as db:
            result = db.execute(
                delete(LinkToken)
                .where(LinkToken.expires_at < now)
                .execution_options(synchronize_session=False)
            )
            return int(result.rowcount or 0)

    def exists_valid(self, token: str, now: dt.datetime) -> bool:
        with self._session("exists_valid") as db:
            found = db.scalars(select(LinkToken.id).where(*_valid_token_filter(token, now)).limit(1)).first()
            return found is not None
