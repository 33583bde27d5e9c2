"""Read-only summary statistics over a learner's progress records."""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .content import CurriculumTotals
from .identity import UserSnapshot
from .progress import ProgressRecord
from .scope import ScopeKind


class ProgressStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_modules: int = 0
    completed_modules: int = 0
    total_lessons: int = 0
    completed_lessons: int = 0
    completed_exercises: int = 0
    total_xp: int = 0
    ledger_xp: int = 0
    average_score: float = 0.0
    streak: int = 0


def compute_stats(
    records: Iterable[ProgressRecord],
    *,
    totals: Optional[CurriculumTotals] = None,
    user: Optional[UserSnapshot] = None,
) -> ProgressStats:
    """Summarize ``records`` without touching storage.

    A record counts as a completed lesson/module when its deepest scope field
    is a lesson/module and its status is COMPLETED or MASTERED. ``total_xp``
    comes from the user row, which is authoritative; ``ledger_xp`` is the sum
    of per-record XP and only includes structural rewards.
    """
    totals = totals or CurriculumTotals()
    completed = {kind: 0 for kind in ScopeKind}
    ledger_xp = 0
    scores = []

    for record in records:
        if record.status.is_complete:
            completed[record.scope_kind] += 1
        ledger_xp += record.xp_earned
        if record.score is not None:
            scores.append(record.score)

    average = round(sum(scores) / len(scores), 2) if scores else 0.0
    return ProgressStats(
        total_modules=max(totals.total_modules, completed[ScopeKind.MODULE]),
        completed_modules=completed[ScopeKind.MODULE],
        total_lessons=max(totals.total_lessons, completed[ScopeKind.LESSON]),
        completed_lessons=completed[ScopeKind.LESSON],
        completed_exercises=completed[ScopeKind.EXERCISE],
        total_xp=user.total_xp if user is not None else ledger_xp,
        ledger_xp=ledger_xp,
        average_score=average,
        streak=user.streak if user is not None else 0,
    )


__all__ = ["ProgressStats", "compute_stats"]
