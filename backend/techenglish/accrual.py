"""End-to-end accrual flows used by the HTTP layer.

Each flow runs the core write first and treats achievement evaluation as a
follow-up: an unlock failure is logged and never rolls back the progress
update or session close that triggered it.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel

from .achievements import UnlockedAchievement, achievement_unlocker
from .db.session import run_in_transaction, session_scope
from .errors import UserNotFoundError
from .identity import UserSnapshot
from .learning_sessions import SessionCloseResult, session_accumulator
from .progress import ProgressRecord, ProgressUpdate, ProgressUpdateResult, progress_ledger
from .stats import ProgressStats, compute_stats
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class ProgressSubmission(BaseModel):
    result: ProgressUpdateResult
    unlocked: List[UnlockedAchievement] = []


class SessionFinish(BaseModel):
    result: SessionCloseResult
    unlocked: List[UnlockedAchievement] = []


class ProgressOverview(BaseModel):
    records: List[ProgressRecord]
    stats: ProgressStats
    user: Optional[UserSnapshot] = None


class ResetSummary(BaseModel):
    user_id: str
    progress_records: int = 0
    sessions: int = 0
    achievements: int = 0


def submit_progress(user_id: str, update: ProgressUpdate) -> ProgressSubmission:
    result = progress_ledger.upsert(user_id, update)
    unlocked: List[UnlockedAchievement] = []
    if result.xp_earned > 0:
        unlocked = achievement_unlocker.check_best_effort(user_id)
    return ProgressSubmission(result=result, unlocked=unlocked)


def finish_session(user_id: str, session_id: str) -> SessionFinish:
    result = session_accumulator.close(user_id, session_id)
    unlocked: List[UnlockedAchievement] = []
    if result.closed_now:
        unlocked = achievement_unlocker.check_best_effort(user_id, session_id=session_id)
    return SessionFinish(result=result, unlocked=unlocked)


def progress_overview(user_id: str) -> ProgressOverview:
    from .repositories.content import content_repository
    from .repositories.users import users

    records = progress_ledger.list_records(user_id)
    with session_scope(commit=False) as session:
        totals = content_repository.totals(session)
        user = users.get(session, user_id)
    return ProgressOverview(records=records, stats=compute_stats(records, totals=totals, user=user), user=user)


def reset_user(user_id: str, *, actor: str) -> ResetSummary:
    """Administrative reset: drop all progress, sessions and unlocks and zero the counters."""
    from .repositories.achievements import achievement_repository
    from .repositories.learning_sessions import learning_sessions
    from .repositories.progress_records import progress_records
    from .repositories.users import users

    def _reset(session) -> ResetSummary:
        if users.get(session, user_id) is None:
            raise UserNotFoundError(f"User '{user_id}' does not exist.")
        summary = ResetSummary(
            user_id=user_id,
            progress_records=progress_records.delete_for_user(session, user_id),
            sessions=learning_sessions.delete_for_user(session, user_id),
            achievements=achievement_repository.delete_for_user(session, user_id),
        )
        users.reset(session, user_id)
        users.record_audit(session, user_id, "progress_reset", summary.model_dump(), actor=actor)
        return summary

    summary = run_in_transaction(_reset, label="progress reset")
    logger.warning(
        "Reset progress for user=%s by %s: %d record(s), %d session(s), %d achievement(s)",
        user_id,
        actor,
        summary.progress_records,
        summary.sessions,
        summary.achievements,
    )
    emit_event("progress_reset", actor=actor, **summary.model_dump())
    return summary


__all__ = [
    "ProgressOverview",
    "ProgressSubmission",
    "ResetSummary",
    "SessionFinish",
    "finish_session",
    "progress_overview",
    "reset_user",
    "submit_progress",
]
