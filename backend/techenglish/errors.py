"""Error taxonomy shared by the progress, session and achievement services."""

from __future__ import annotations

from typing import Any, List, Optional


class ProgressError(Exception):
    """Base class for errors raised by the progress engine."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[List[Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class ProgressValidationError(ProgressError):
    """Malformed request; raised before any persistence access."""

    status_code = 400


class ConflictError(ProgressError):
    """Concurrent write detected and retries were exhausted."""

    status_code = 409


class ContentNotFoundError(ProgressError):
    status_code = 404


class PersistenceError(ProgressError):
    """The underlying store failed; the transaction was rolled back."""

    status_code = 500


class SessionNotFoundError(ProgressError):
    status_code = 404


class UserNotFoundError(ProgressError):
    status_code = 404


class SessionClosedError(ProgressError):
    status_code = 409


__all__ = [
    "ConflictError",
    "ContentNotFoundError",
    "PersistenceError",
    "ProgressError",
    "ProgressValidationError",
    "SessionClosedError",
    "SessionNotFoundError",
    "UserNotFoundError",
]
