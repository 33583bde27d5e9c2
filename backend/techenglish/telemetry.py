"""In-process telemetry for XP credits, session lifecycle and achievement unlocks."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List

logger = logging.getLogger("techenglish.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> None:
    with _lock:
        _listeners.append(listener)


def unregister_listener(listener: Listener) -> None:
    with _lock:
        if listener in _listeners:
            _listeners.remove(listener)


@contextmanager
def capture() -> Iterator[List[TelemetryEvent]]:
    """Collect every event emitted inside the block."""
    events: List[TelemetryEvent] = []
    register_listener(events.append)
    try:
        yield events
    finally:
        unregister_listener(events.append)


def emit_event(name: str, **fields: Any) -> None:
    """Log a structured event and hand it to every registered listener.

    Listener failures are logged and never propagate to the caller; telemetry
    must not turn a committed XP credit into a failed request.
    """
    event = TelemetryEvent(name=name, payload={key: _plain(value) for key, value in fields.items()})

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **event.payload}, default=str))


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


__all__ = [
    "TelemetryEvent",
    "capture",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
