"""Connection-pool observability for the progress store."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import emit_event

logger = logging.getLogger(__name__)


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    last_emit: float = 0.0

    def as_dict(self) -> Dict[str, int]:
        return {"connects": self.connects, "checkouts": self.checkouts, "checkins": self.checkins}


_COUNTERS: Dict[int, PoolCounters] = {}
_TELEMETRY_INTERVAL = float(os.getenv("TECHENGLISH_DB_TELEMETRY_INTERVAL", "30"))


def instrument_engine(engine: Engine) -> None:
    """Count pool connects/checkouts/checkins and periodically emit ``db_pool_status``."""
    key = id(engine)
    if key in _COUNTERS:
        return
    counters = PoolCounters()
    _COUNTERS[key] = counters

    def _bump(field: str, source: str) -> None:
        setattr(counters, field, getattr(counters, field) + 1)
        now = time.time()
        if _TELEMETRY_INTERVAL > 0 and (now - counters.last_emit) < _TELEMETRY_INTERVAL:
            return
        counters.last_emit = now
        emit_event("db_pool_status", source=source, status=_pool_status(engine), **counters.as_dict())

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        _bump("connects", "connect")

    @event.listens_for(engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:  # type: ignore[no-untyped-def]
        _bump("checkouts", "checkout")

    @event.listens_for(engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        _bump("checkins", "checkin")


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(id(engine)) or PoolCounters()
    return {"status": _pool_status(engine), **counters.as_dict()}


def forget_engine(engine: Engine) -> None:
    _COUNTERS.pop(id(engine), None)


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover
        logger.debug("Pool status unavailable: %s", exc)
        return f"unavailable: {exc}"


__all__ = [
    "forget_engine",
    "get_pool_snapshot",
    "instrument_engine",
]
