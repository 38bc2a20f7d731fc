from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from onetime_link.db.session import build_engine, build_session_factory, init_db  # noqa: E402
from onetime_link.services.links import LinkOptions, LinkService  # noqa: E402
from onetime_link.stores.memory import InMemoryLinkStore  # noqa: E402
from onetime_link.stores.sql import SqlAlchemyLinkStore  # noqa: E402


class FakeClock:
    def __init__(self, start: dt.datetime) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, delta: dt.timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc))


@pytest.fixture
def memory_store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def memory_service(memory_store, clock) -> LinkService:  # noqa: ANN001
    return LinkService(memory_store, LinkOptions(default_expiration=dt.timedelta(hours=24)), clock=clock)


@pytest.fixture
def session_factory(tmp_path):  # noqa: ANN001
    engine = build_engine(f"sqlite:///{tmp_path / 'links.db'}")
    init_db(engine)
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture
def sql_store(session_factory) -> SqlAlchemyLinkStore:  # noqa: ANN001
    return SqlAlchemyLinkStore(session_factory)
