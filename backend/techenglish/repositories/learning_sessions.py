"""Persistence for learning sessions and their append-only responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from ..db.models import ExerciseResponseModel, LearningSessionModel


class LearningSessionRepository:
    def create(self, session: Session, user_id: str, *, lesson_id: Optional[str], now: datetime) -> LearningSessionModel:
        model = LearningSessionModel(
            user_id=user_id,
            lesson_id=lesson_id,
            state="OPEN",
            start_time=now,
            last_activity_at=now,
        )
        session.add(model)
        session.flush()
        return model

    def get_for_user(self, session: Session, user_id: str, session_id: str) -> Optional[LearningSessionModel]:
        stmt = (
            select(LearningSessionModel)
            .options(selectinload(LearningSessionModel.responses))
            .where(LearningSessionModel.id == session_id, LearningSessionModel.user_id == user_id)
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_open_idle_since(self, session: Session, cutoff: datetime) -> List[LearningSessionModel]:
        stmt = (
            select(LearningSessionModel)
            .options(selectinload(LearningSessionModel.responses))
            .where(LearningSessionModel.state == "OPEN", LearningSessionModel.last_activity_at < cutoff)
            .order_by(LearningSessionModel.last_activity_at.asc())
        )
        return list(session.execute(stmt).scalars().all())

    def append_response(
        self,
        session: Session,
        model: LearningSessionModel,
        *,
        exercise_id: str,
        user_answer: Any,
        is_correct: bool,
        time_spent: int,
        hints_used: int,
        now: datetime,
    ) -> ExerciseResponseModel:
        sequence = max((response.sequence for response in model.responses), default=0) + 1
        response = ExerciseResponseModel(
            user_id=model.user_id,
            exercise_id=exercise_id,
            sequence=sequence,
            user_answer=user_answer,
            is_correct=is_correct,
            time_spent=time_spent,
            hints_used=hints_used,
            created_at=now,
        )
        model.responses.append(response)
        model.exercises_completed = len(model.responses)
        model.last_activity_at = now
        session.flush()
        return response

    def delete_for_user(self, session: Session, user_id: str) -> int:
        session_ids = select(LearningSessionModel.id).where(LearningSessionModel.user_id == user_id)
        session.execute(
            delete(ExerciseResponseModel)
            .where(ExerciseResponseModel.session_id.in_(session_ids))
            .execution_options(synchronize_session=False)
        )
        result = session.execute(delete(LearningSessionModel).where(LearningSessionModel.user_id == user_id))
        return result.rowcount or 0


learning_sessions = LearningSessionRepository()

__all__ = ["LearningSessionRepository", "learning_sessions"]
