"""
db.engine - Engine bootstrap and session factory for the inventory store.

The connection string comes from config.DB_URL (FIELDINV_DB); a Postgres
URL works unchanged.  Sessions never expire on commit so the store can
hand detached rows to the API layer after closing them.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base

_engine = None
_SessionLocal: sessionmaker | None = None


def init_db(db_url: str, echo: bool = False) -> None:
    """Create the engine, apply SQLite pragmas, and emit CREATE TABLE."""
    global _engine, _SessionLocal

    dispose_db()
    _engine = create_engine(db_url, echo=echo, future=True)

    if db_url.startswith("sqlite"):
        file_backed = ":memory:" not in db_url and db_url.rstrip("/") != "sqlite:"

        @event.listens_for(_engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _rec):
            cur = dbapi_conn.cursor()
            if file_backed:
                cur.execute("PRAGMA journal_mode=WAL")
                cur.execute("PRAGMA synchronous=NORMAL")
            # photos and project links rely on ON DELETE CASCADE
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    Base.metadata.create_all(_engine)
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)


def dispose_db() -> None:
    """Close every pooled connection; init_db() must run again before use."""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_session() -> Session:
    """Return a new session.  Caller is responsible for .close()."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialised - call init_db() first")
    return _SessionLocal()
