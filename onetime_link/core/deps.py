"""Common FastAPI dependencies for the link service and mail delivery."""

from __future__ import annotations

from functools import lru_cache

from onetime_link.core.config import settings
from onetime_link.db.session import SessionLocal
from onetime_link.services.email import EmailSender, build_email_sender
from onetime_link.services.links import LinkOptions, LinkService
from onetime_link.stores.sql import SqlAlchemyLinkStore


@lru_cache(maxsize=1)
def get_link_service() -> LinkService:
    return LinkService(SqlAlchemyLinkStore(SessionLocal), LinkOptions.from_settings(settings))


@lru_cache(maxsize=1)
def get_email_sender() -> EmailSender:
    return build_email_sender(settings)
