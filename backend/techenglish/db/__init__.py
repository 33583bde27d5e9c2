"""Database utilities for the TechEnglish progress engine."""

from .base import Base
from .session import (
    dispose_engine,
    get_engine,
    get_session_factory,
    run_in_transaction,
    session_scope,
)

__all__ = [
    "Base",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "run_in_transaction",
    "session_scope",
]
