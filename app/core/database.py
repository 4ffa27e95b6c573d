"""Database engine construction for the backing store.

Features:
- Lazily built engine (nothing connects at import time)
- SQLite pragmas for concurrent access
- Slow query logging
"""

import logging
import time
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str | None = None) -> Engine:
    """Create an engine with query timing and SQLite tuning."""
    settings = get_settings()
    database_url = database_url or settings.database_url

    engine_args: dict[str, Any] = {
        "echo": settings.debug and settings.enable_query_logging,
    }

    if database_url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}  # Needed for SQLite
        if ":memory:" in database_url or database_url == "sqlite://":
            # One shared connection so every session sees the same in-memory database
            engine_args["poolclass"] = StaticPool
        else:
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_args.update({
            "pool_pre_ping": True,  # Verify connections before using
            "pool_recycle": 3600,   # Recycle connections after 1 hour
        })

    engine = create_engine(database_url, **engine_args)
    _install_listeners(engine, sqlite=database_url.startswith("sqlite"))
    return engine


def _install_listeners(engine: Engine, sqlite: bool) -> None:
    settings = get_settings()

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info["query_start_time"].pop()
        total_time = (time.perf_counter() - start_time) * 1000

        if total_time > settings.slow_query_threshold_ms:
            logger.warning(f"Slow query detected ({total_time:.2f}ms): {statement[:200]}...")

    if sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
