"""Engine and session factory for the job store.

The database URL is the first of ``LABOR_DATABASE_URL``, ``DATABASE_URL`` or a
local SQLite file. A ``.env`` file (path in ``LABOR_DOTENV``, default ``.env``)
is loaded on import, so ``locallabor serve`` and ``locallabor init-db`` agree on
the database without extra flags.

Tuning: ``LABOR_DB_POOL_SIZE`` (5), ``LABOR_DB_MAX_OVERFLOW`` (10),
``LABOR_DB_ECHO=1`` to log SQL.

SQLite connections get ``PRAGMA foreign_keys=ON`` so the cascade and
``SET NULL`` rules declared on the models hold there as they do on PostgreSQL.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv(dotenv_path=os.getenv("LABOR_DOTENV", ".env"))


def database_url() -> str:
    url = (
        os.getenv("LABOR_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite:///./locallabor.db"
    )
    # Legacy scheme and bare URLs both go to the psycopg v3 driver
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str | None = None, **overrides: Any) -> Engine:
    url = url or database_url()
    kwargs: dict[str, Any] = {
        "echo": os.getenv("LABOR_DB_ECHO", "0") == "1",
        "pool_pre_ping": True,
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory databases live on a single shared connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = int(os.getenv("LABOR_DB_POOL_SIZE", "5"))
        kwargs["max_overflow"] = int(os.getenv("LABOR_DB_MAX_OVERFLOW", "10"))
    kwargs.update(overrides)

    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_foreign_keys)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


# No connection is opened until the first query
ENGINE: Engine = make_engine()
SessionLocal = make_session_factory(ENGINE)


@contextmanager
def get_session() -> Iterator[Session]:
    """Yield a session and always close it. Callers commit explicitly."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def current_engine_url() -> str:
    return ENGINE.url.render_as_string(hide_password=True)
