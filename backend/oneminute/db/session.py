"""Process-wide engine and the ``session_scope`` unit of work."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings
from .monitoring import instrument_engine

_IN_MEMORY_SQLITE_URLS = {"sqlite://", "sqlite:///:memory:"}

_engine: Optional[Engine] = None
_make_session: Optional[sessionmaker[Session]] = None


def _engine_options(settings: Settings) -> dict[str, object]:
    options: dict[str, object] = {"echo": settings.database_echo, "future": True, "pool_pre_ping": True}
    url = settings.database_url or ""
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if url in _IN_MEMORY_SQLITE_URLS:
            # A single shared connection keeps the in-memory schema alive.
            options["poolclass"] = StaticPool
    else:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


def get_engine() -> Engine:
    """Create the engine from settings on first use and reuse it afterwards."""
    global _engine, _make_session
    if _engine is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("ONEMINUTE_DATABASE_URL must be configured before using the database.")
        _engine = create_engine(settings.database_url, **_engine_options(settings))
        instrument_engine(_engine)
        _make_session = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False, future=True)
    return _engine


@contextmanager
def session_scope(*, commit: bool = True) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""
    get_engine()
    assert _make_session is not None
    session = _make_session()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    global _engine, _make_session
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _make_session = None


__all__ = ["dispose_engine", "get_engine", "session_scope"]
