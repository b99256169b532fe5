"""
Database connection and session management for the audit/config store.

The store is optional: without DATABASE_URL every accessor returns None and
the sink skips its writes.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from provisioner.config import settings


@lru_cache
def get_engine() -> Engine | None:
    url = settings.database_url
    if not url:
        return None
    kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **kwargs)


@lru_cache
def get_session_factory() -> sessionmaker | None:
    engine = get_engine()
    if engine is None:
        return None
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> bool:
    """
    Create the audit/config tables. Returns False when no database is configured.
    """
    from provisioner.models import Base

    engine = get_engine()
    if engine is None:
        return False
    Base.metadata.create_all(bind=engine)
    return True


def database_health() -> dict[str, Any]:
    """
    Return structured database health details.
    """
    engine = get_engine()
    if engine is None:
        return {"ok": True, "configured": False}
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return {"ok": True, "configured": True, "dialect": engine.dialect.name}
    except SQLAlchemyError as exc:
        return {"ok": False, "configured": True, "error": str(exc)}
