from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from gateway.config import Settings
from gateway.models import Base

logger = logging.getLogger(__name__)


engine: Engine | None = None
_session_factory: sessionmaker | None = None

SQLITE_BUSY_TIMEOUT_MS = 10_000


class _SessionWrapper:
    """Callable proxy returning sessions from the current factory."""

    def __call__(self, *args: Any, **kwargs: Any):
        if _session_factory is None:
            raise RuntimeError("Database not initialized")
        return _session_factory(*args, **kwargs)


SessionLocal = _SessionWrapper()


def init_db(cfg: Settings) -> None:
    """Create engine and session factory using SQLAlchemy's ``create_engine``."""
    global engine, _session_factory

    connect_args = {}
    if cfg.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(
        cfg.database_url,
        future=True,
        connect_args=connect_args,
        pool_size=cfg.db_pool_size,
        max_overflow=0,
        pool_recycle=30,
        pool_pre_ping=True,
    )
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)
    _session_factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
    )

    if cfg.db_create_all:
        Base.metadata.create_all(engine)


def _configure_sqlite(db_engine: Engine) -> None:
    # Writers queue on the busy timeout instead of failing with "database is locked".
    @event.listens_for(db_engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        finally:
            cursor.close()

    logger.info("SQLite engine configured with WAL journal")
