"""Engine and session helpers for the relational progress store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..config import Settings, get_settings
from ..errors import ConflictError, PersistenceError
from .monitoring import forget_engine, instrument_engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def _build_engine(settings: Settings) -> Engine:
    database_url = settings.database_url
    if not database_url:
        raise RuntimeError("TECHENGLISH_DATABASE_URL must be configured before using the database.")

    kwargs: dict[str, object] = {
        "echo": settings.database_echo,
        "future": True,
        "pool_pre_ping": True,
    }

    if database_url.startswith("sqlite"):
        # SQLite waits on its own file lock; give concurrent writers room before "database is locked".
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow

    return create_engine(database_url, **kwargs)


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = _build_engine(get_settings())
        instrument_engine(_engine)
        _session_factory = sessionmaker(
            bind=_engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        get_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    """One unit of work: everything inside commits together or not at all."""
    session = get_session_factory()()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def run_in_transaction(work: Callable[[Session], T], *, retries: int = 1, label: str = "write") -> T:
    """Run ``work`` in its own unit of work, replaying it when a concurrent writer wins.

    Unique-constraint collisions and row-version mismatches roll back and retry
    from scratch; ``retries`` is the total number of attempts, never fewer than
    one. Exhausting them surfaces as :class:`ConflictError`.
    Any other database failure becomes :class:`PersistenceError`.
    """
    last_error: Optional[Exception] = None
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            with session_scope() as session:
                return work(session)
        except (IntegrityError, StaleDataError) as exc:
            last_error = exc
            logger.warning(
                "Concurrent %s conflict (attempt %d/%d): %s",
                label,
                attempt,
                attempts,
                exc.__class__.__name__,
            )
        except SQLAlchemyError as exc:
            logger.exception("Database failure during %s", label)
            raise PersistenceError(f"Failed to {label}.") from exc
    raise ConflictError(f"Concurrent {label} conflict; retry the request.") from last_error


def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        forget_engine(_engine)
    _engine = None
    _session_factory = None


__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "run_in_transaction",
    "session_scope",
]
