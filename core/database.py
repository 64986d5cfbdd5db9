"""
core/database.py -- Shared SQLAlchemy engine factory and schema metadata.

Users, posts and comments live in one database so cascading deletes can run
inside a single transaction. auth/store.py and blog/store.py each declare
their tables on the shared `metadata` defined here; create_db_engine() builds
the one Engine they both receive.

Usage:
    engine = create_db_engine("sqlite:///postboard.db")
    users = UserStore(engine)
    blog = BlogStore(engine)
    ...
    engine.dispose()
"""

from datetime import datetime, timezone

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine

metadata = MetaData()


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL mode and foreign key enforcement on each new connection.

    SQLite PRAGMAs are per-connection and not inherited from the pool.
    foreign_keys is off by default in SQLite; without it a post could be
    deleted while comments still reference it.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_db_engine(db_url: str, **engine_kwargs) -> Engine:
    """Create an Engine for db_url with the SQLite connection setup applied.

    engine_kwargs go straight to create_engine (poolclass, echo, ...).
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync route handlers in a threadpool, so a pooled
        # connection may be used from a thread other than its creator.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
