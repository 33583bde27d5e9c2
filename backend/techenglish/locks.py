"""Per-key mutual exclusion for read-modify-write sequences."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Hashable, Iterator


@dataclass
class _Entry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class KeyedLocks:
    """Hands out one lock per key; entries are dropped once nobody holds or waits on them.

    Only serializes callers inside this process. Cross-process writers are
    caught by the database (unique constraints and row versions).
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(key, _Entry())
            entry.holders += 1
        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


__all__ = ["KeyedLocks"]
