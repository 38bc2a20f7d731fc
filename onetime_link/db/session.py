"""Database engine and session lifecycle helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from onetime_link.core.config import settings


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Sessions are opened from request threads and the sweeper thread.
        return create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables; deployments on PostgreSQL use Alembic instead."""
    from onetime_link import models  # noqa: F401
    from onetime_link.db.base import Base

    Base.metadata.create_all(bind=bind or engine)
