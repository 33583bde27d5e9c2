"""Progress ledger: per-user, per-scope progress records and structural XP credits."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.base import as_utc, utcnow
from .db.session import run_in_transaction, session_scope
from .errors import ContentNotFoundError, PersistenceError
from .identity import UserSnapshot
from .locks import KeyedLocks
from .scope import ScopeKey, ScopeKind, resolve_scope
from .telemetry import emit_event
from .xp import structural_completion_xp

if TYPE_CHECKING:
    from .db.models import ProgressRecordModel

logger = logging.getLogger(__name__)


class ProgressStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    MASTERED = "MASTERED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def is_complete(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.MASTERED)


_STATUS_ORDER = list(ProgressStatus)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProgressUpdate(_CamelModel):
    """Body of a progress update. ``attempts`` is a delta, not an absolute count."""

    level_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    exercise_id: Optional[str] = None
    status: Optional[ProgressStatus] = None
    score: Optional[float] = Field(default=None, ge=0, le=100)
    time_spent: Optional[int] = Field(default=None, ge=0)
    attempts: Optional[int] = Field(default=None, ge=1)
    allow_regression: bool = False


class ProgressRecord(_CamelModel):
    id: str
    user_id: str
    level_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    exercise_id: Optional[str] = None
    status: ProgressStatus
    score: Optional[float] = None
    best_score: Optional[float] = None
    time_spent: int = 0
    attempts: int = 0
    xp_earned: int = 0
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def scope(self) -> ScopeKey:
        return ScopeKey(self.level_id, self.module_id, self.lesson_id, self.exercise_id)

    @property
    def scope_kind(self) -> ScopeKind:
        return self.scope.kind


class ProgressUpdateResult(BaseModel):
    record: ProgressRecord
    xp_earned: int
    completed_now: bool
    user: Optional[UserSnapshot] = None


def record_from_model(model: "ProgressRecordModel") -> ProgressRecord:
    return ProgressRecord(
        id=model.id,
        user_id=model.user_id,
        level_id=model.level_id,
        module_id=model.module_id,
        lesson_id=model.lesson_id,
        exercise_id=model.exercise_id,
        status=ProgressStatus(model.status),
        score=model.score,
        best_score=model.best_score,
        time_spent=model.time_spent,
        attempts=model.attempts,
        xp_earned=model.xp_earned,
        completed_at=as_utc(model.completed_at),
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
    )


def effective_status(current: ProgressStatus, requested: Optional[ProgressStatus], *, allow_regression: bool) -> ProgressStatus:
    """Status after an update; lower statuses are ignored unless regression is explicit.

    Structural XP and ``completed_at`` belong to the transition into COMPLETED
    only. A scope that jumps straight to MASTERED earns neither, and a later
    COMPLETED is a regression that changes nothing; the record still counts as
    complete for stats and achievements.
    """
    if requested is None:
        return current
    if requested.rank < current.rank and not allow_regression:
        logger.debug("Ignoring status regression %s -> %s", current.value, requested.value)
        return current
    return requested


class ProgressLedger:
    """Upserts progress records and credits structural XP in one transaction.

    Same-scope writers are serialized twice over: a per-(user, scope) lock in
    this process, and the ``(user_id, scope_key)`` unique constraint plus the
    row ``version`` column in the database. A lost race is retried with a
    fresh transaction; exhausting the retries raises :class:`ConflictError`.
    """

    def __init__(
        self,
        *,
        locks: Optional[KeyedLocks] = None,
        max_retries: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._locks = locks or KeyedLocks()
        self._max_retries = max_retries
        self._clock = clock

    def upsert(self, user_id: str, update: ProgressUpdate) -> ProgressUpdateResult:
        scope = resolve_scope(update)
        retries = self._max_retries
        if retries is None:
            retries = get_settings().progress_upsert_max_retries

        with self._locks.hold((user_id, scope.canonical())):
            result = run_in_transaction(
                lambda session: self._apply(session, user_id, scope, update),
                retries=retries,
                label="progress update",
            )

        emit_event(
            "progress_updated",
            user_id=user_id,
            scope=scope.canonical(),
            status=result.record.status,
            attempts=result.record.attempts,
            xp_earned=result.xp_earned,
        )
        if result.xp_earned:
            emit_event("xp_credited", user_id=user_id, amount=result.xp_earned, reason="structural_completion")
        return result

    def _apply(self, session: Session, user_id: str, scope: ScopeKey, update: ProgressUpdate) -> ProgressUpdateResult:
        from .repositories.progress_records import progress_records
        from .repositories.users import users

        now = self._clock()
        existing = progress_records.find(session, user_id, scope)
        if existing is None:
            status = update.status or ProgressStatus.NOT_STARTED
            previously_completed = False
        else:
            status = effective_status(
                ProgressStatus(existing.status), update.status, allow_regression=update.allow_regression
            )
            previously_completed = existing.completed_at is not None

        completing = (
            update.status is ProgressStatus.COMPLETED
            and status is ProgressStatus.COMPLETED
            and not previously_completed
        )
        reward = structural_completion_xp(
            scope,
            completing=completing,
            exercise_reward=self._exercise_reward(session, scope) if completing else None,
        )

        if existing is None:
            model = progress_records.create(session, user_id, scope, update, reward=reward, now=now)
        else:
            model = progress_records.merge(
                session, existing, update, status=status, reward=reward, completing=completing, now=now
            )

        user: Optional[UserSnapshot] = None
        if reward > 0:
            user = users.credit_xp(session, user_id, reward, reason=f"{scope.kind.value}_completion", now=now)
        users.record_audit(
            session,
            user_id,
            "progress_upsert",
            {"scope": scope.canonical(), "status": status.value, "xp": reward},
        )
        return ProgressUpdateResult(
            record=record_from_model(model),
            xp_earned=reward,
            completed_now=completing,
            user=user,
        )

    def _exercise_reward(self, session: Session, scope: ScopeKey) -> Optional[int]:
        if scope.kind is not ScopeKind.EXERCISE or scope.exercise_id is None:
            return None
        from .repositories.content import content_repository

        try:
            return content_repository.exercise_reward(session, scope.exercise_id)
        except ContentNotFoundError:
            logger.warning("Exercise %s not in content store; using default reward", scope.exercise_id)
            return None

    def list_records(self, user_id: str) -> List[ProgressRecord]:
        from .repositories.progress_records import progress_records

        try:
            with session_scope(commit=False) as session:
                return [record_from_model(model) for model in progress_records.list_for_user(session, user_id)]
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch progress") from exc

    def find(self, user_id: str, scope: ScopeKey) -> Optional[ProgressRecord]:
        from .repositories.progress_records import progress_records

        with session_scope(commit=False) as session:
            model = progress_records.find(session, user_id, scope)
            return record_from_model(model) if model else None


progress_ledger = ProgressLedger()

__all__ = [
    "ProgressLedger",
    "ProgressRecord",
    "ProgressStatus",
    "ProgressUpdate",
    "ProgressUpdateResult",
    "effective_status",
    "progress_ledger",
    "record_from_model",
]
