"""Remove expired one-time links from the configured database."""

from __future__ import annotations

import datetime as dt

from onetime_link.core.config import settings
from onetime_link.core.logging import setup_logging
from onetime_link.db.session import SessionLocal
from onetime_link.services.links import LinkOptions, LinkService
from onetime_link.stores.sql import SqlAlchemyLinkStore


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    service = LinkService(SqlAlchemyLinkStore(SessionLocal), LinkOptions.from_settings(settings))
    started = dt.datetime.now(dt.timezone.utc)

    removed = service.cleanup()

    duration = (dt.datetime.now(dt.timezone.utc) - started).total_seconds()
    print(f"[done] removed={removed} duration_s={duration:.2f}")


if __name__ == "__main__":
    main()
