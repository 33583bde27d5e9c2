"""Session Accumulator: bounded windows of exercise answers, finalized once.

A session is OPEN until the learner closes it, at which point the per-response
XP of every recorded answer is summed once and credited to the learner. Sessions
that sit idle past ``session_max_idle_minutes`` become EXPIRED instead and earn
nothing. Neither CLOSED nor EXPIRED sessions accept further answers, and a new
session is always a fresh row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from .config import get_settings
from .content import Answer, answer_preview, is_correct_answer
from .db.base import as_utc, utcnow
from .db.session import run_in_transaction, session_scope
from .errors import SessionClosedError, SessionNotFoundError
from .identity import UserSnapshot
from .locks import KeyedLocks
from .telemetry import emit_event
from .xp import response_xp, session_xp

if TYPE_CHECKING:
    from .db.models import ExerciseResponseModel, LearningSessionModel

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseSubmission(_CamelModel):
    exercise_id: str = Field(..., min_length=1)
    answer: Answer
    time_spent: int = Field(default=0, ge=0)
    hints_used: int = Field(default=0, ge=0)


class ExerciseResponse(_CamelModel):
    id: str
    session_id: str
    exercise_id: str
    sequence: int
    user_answer: Answer
    is_correct: bool
    time_spent: int
    hints_used: int
    created_at: datetime

    @property
    def xp(self) -> int:
        return response_xp(is_correct=self.is_correct, hints_used=self.hints_used, time_spent=self.time_spent)


class LearningSession(_CamelModel):
    id: str
    user_id: str
    lesson_id: Optional[str] = None
    state: SessionState
    start_time: datetime
    last_activity_at: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    xp_earned: int = 0
    exercises_completed: int = 0
    responses: List[ExerciseResponse] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN


class SessionCloseResult(BaseModel):
    session: LearningSession
    xp_earned: int
    closed_now: bool
    user: Optional[UserSnapshot] = None


def response_from_model(model: "ExerciseResponseModel") -> ExerciseResponse:
    return ExerciseResponse(
        id=model.id,
        session_id=model.session_id,
        exercise_id=model.exercise_id,
        sequence=model.sequence,
        user_answer=model.user_answer,
        is_correct=model.is_correct,
        time_spent=model.time_spent,
        hints_used=model.hints_used,
        created_at=as_utc(model.created_at),
    )


def session_from_model(model: "LearningSessionModel") -> LearningSession:
    return LearningSession(
        id=model.id,
        user_id=model.user_id,
        lesson_id=model.lesson_id,
        state=SessionState(model.state),
        start_time=as_utc(model.start_time),
        last_activity_at=as_utc(model.last_activity_at),
        end_time=as_utc(model.end_time),
        duration_seconds=model.duration_seconds,
        xp_earned=model.xp_earned,
        exercises_completed=model.exercises_completed,
        responses=[response_from_model(response) for response in model.responses],
    )


class SessionAccumulator:
    def __init__(
        self,
        *,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        max_idle: Optional[timedelta] = None,
    ) -> None:
        self._locks = locks or KeyedLocks()
        self._clock = clock
        self._max_idle = max_idle

    @property
    def max_idle(self) -> timedelta:
        if self._max_idle is not None:
            return self._max_idle
        return timedelta(minutes=get_settings().session_max_idle_minutes)

    def is_stale(self, model: "LearningSessionModel", now: datetime) -> bool:
        return model.state == SessionState.OPEN.value and now - as_utc(model.last_activity_at) > self.max_idle

    def start(self, user_id: str, *, lesson_id: Optional[str] = None) -> LearningSession:
        from .repositories.learning_sessions import learning_sessions

        lesson_id = lesson_id.strip() if lesson_id and lesson_id.strip() else None
        now = self._clock()
        created = run_in_transaction(
            lambda session: session_from_model(
                learning_sessions.create(session, user_id, lesson_id=lesson_id, now=now)
            ),
            label="session start",
        )
        logger.info("Started learning session %s for user=%s lesson=%s", created.id, user_id, lesson_id)
        return created

    def get(self, user_id: str, session_id: str) -> LearningSession:
        with self._locks.hold(session_id):
            view, expired = run_in_transaction(
                lambda session: self._load_and_expire(session, user_id, session_id),
                label="session read",
            )
        if expired:
            self._emit_expired(view)
        return view

    def record_response(self, user_id: str, session_id: str, submission: ResponseSubmission) -> ExerciseResponse:
        """Append one answer to an OPEN session. Correctness comes from the content store."""
        with self._locks.hold(session_id):
            outcome = run_in_transaction(
                lambda session: self._append(session, user_id, session_id, submission),
                retries=get_settings().progress_upsert_max_retries,
                label="response record",
            )
        view, response = outcome
        if response is None:
            if view.state is SessionState.EXPIRED:
                self._emit_expired(view)
            raise SessionClosedError(
                f"Session '{session_id}' is {view.state.value.lower()} and accepts no further responses."
            )
        logger.info(
            "Recorded response #%d in session %s: exercise=%s correct=%s answer=%r",
            response.sequence,
            session_id,
            response.exercise_id,
            response.is_correct,
            answer_preview(submission.answer),
        )
        return response

    def close(self, user_id: str, session_id: str) -> SessionCloseResult:
        """Finalize an OPEN session and credit its XP; repeated calls return the stored result."""
        with self._locks.hold(session_id):
            result, expired = run_in_transaction(
                lambda session: self._close(session, user_id, session_id),
                retries=get_settings().progress_upsert_max_retries,
                label="session close",
            )
        if expired:
            self._emit_expired(result.session)
        elif result.closed_now:
            emit_event(
                "session_closed",
                user_id=user_id,
                session_id=session_id,
                xp_earned=result.xp_earned,
                exercises_completed=result.session.exercises_completed,
                duration_seconds=result.session.duration_seconds,
            )
            if result.xp_earned:
                emit_event("xp_credited", user_id=user_id, amount=result.xp_earned, reason="session_close")
        return result

    def expire_stale(self, *, now: Optional[datetime] = None) -> List[LearningSession]:
        """Move every OPEN session idle past the cutoff to EXPIRED."""
        from .repositories.learning_sessions import learning_sessions

        now = now or self._clock()
        cutoff = now - self.max_idle

        def _sweep(session: Session) -> List[LearningSession]:
            expired = []
            for model in learning_sessions.list_open_idle_since(session, cutoff):
                self._expire(model, now)
                expired.append(session_from_model(model))
            session.flush()
            return expired

        expired = run_in_transaction(_sweep, retries=get_settings().progress_upsert_max_retries, label="session sweep")
        for view in expired:
            self._emit_expired(view)
        if expired:
            logger.info("Expired %d idle learning session(s)", len(expired))
        return expired

    def _require(self, session: Session, user_id: str, session_id: str) -> "LearningSessionModel":
        from .repositories.learning_sessions import learning_sessions

        model = learning_sessions.get_for_user(session, user_id, session_id)
        if model is None:
            raise SessionNotFoundError(f"Session '{session_id}' was not found.")
        return model

    def _load_and_expire(self, session: Session, user_id: str, session_id: str) -> Tuple[LearningSession, bool]:
        model = self._require(session, user_id, session_id)
        now = self._clock()
        expired = self.is_stale(model, now)
        if expired:
            self._expire(model, now)
            session.flush()
        return session_from_model(model), expired

    def _append(
        self,
        session: Session,
        user_id: str,
        session_id: str,
        submission: ResponseSubmission,
    ) -> Tuple[LearningSession, Optional[ExerciseResponse]]:
        from .repositories.content import content_repository
        from .repositories.learning_sessions import learning_sessions

        model = self._require(session, user_id, session_id)
        now = self._clock()
        if self.is_stale(model, now):
            self._expire(model, now)
            session.flush()
        if model.state != SessionState.OPEN.value:
            return session_from_model(model), None

        exercise = content_repository.require_exercise(session, submission.exercise_id.strip())
        response = learning_sessions.append_response(
            session,
            model,
            exercise_id=exercise.exercise_id,
            user_answer=submission.answer,
            is_correct=is_correct_answer(exercise, submission.answer),
            time_spent=submission.time_spent,
            hints_used=submission.hints_used,
            now=now,
        )
        return session_from_model(model), response_from_model(response)

    def _close(self, session: Session, user_id: str, session_id: str) -> Tuple[SessionCloseResult, bool]:
        from .repositories.users import users

        model = self._require(session, user_id, session_id)
        if model.state != SessionState.OPEN.value:
            view = session_from_model(model)
            return SessionCloseResult(session=view, xp_earned=view.xp_earned, closed_now=False), False

        now = self._clock()
        if self.is_stale(model, now):
            self._expire(model, now)
            session.flush()
            view = session_from_model(model)
            return SessionCloseResult(session=view, xp_earned=0, closed_now=False), True

        xp = session_xp(model.responses)
        model.state = SessionState.CLOSED.value
        model.end_time = now
        model.duration_seconds = max(0, int((now - as_utc(model.start_time)).total_seconds()))
        model.xp_earned = xp
        model.exercises_completed = len(model.responses)
        session.flush()

        user = None
        if xp > 0:
            user = users.credit_xp(session, user_id, xp, reason="session_close", now=now)
        users.record_audit(
            session,
            user_id,
            "session_close",
            {"session_id": session_id, "xp": xp, "responses": len(model.responses)},
        )
        logger.info("Closed session %s for user=%s with %d XP over %d response(s)", session_id, user_id, xp, len(model.responses))
        return SessionCloseResult(session=session_from_model(model), xp_earned=xp, closed_now=True, user=user), False

    @staticmethod
    def _expire(model: "LearningSessionModel", now: datetime) -> None:
        model.state = SessionState.EXPIRED.value
        model.end_time = now
        model.duration_seconds = max(0, int((as_utc(model.last_activity_at) - as_utc(model.start_time)).total_seconds()))
        model.xp_earned = 0

    @staticmethod
    def _emit_expired(view: LearningSession) -> None:
        emit_event(
            "session_expired",
            user_id=view.user_id,
            session_id=view.id,
            exercises_completed=view.exercises_completed,
            idle_since=view.last_activity_at,
        )


session_accumulator = SessionAccumulator()

__all__ = [
    "ExerciseResponse",
    "LearningSession",
    "ResponseSubmission",
    "SessionAccumulator",
    "SessionCloseResult",
    "SessionState",
    "response_from_model",
    "session_accumulator",
    "session_from_model",
]
