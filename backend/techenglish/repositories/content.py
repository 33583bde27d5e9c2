"""Read-only lookups against the curriculum tables."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..content import CurriculumTotals, ExerciseInfo, ordered_strings
from ..db.models import ExerciseModel, LessonModel, ModuleModel
from ..errors import ContentNotFoundError


class ContentRepository:
    def find_exercise(self, session: Session, exercise_id: str) -> Optional[ExerciseInfo]:
        model = session.get(ExerciseModel, exercise_id)
        if model is None:
            return None
        return ExerciseInfo(
            exercise_id=model.id,
            lesson_id=model.lesson_id,
            question=model.question,
            correct_answer=model.correct_answer,
            answer_parts=ordered_strings(model.answer_parts),
            hints=ordered_strings(model.hints),
            xp_reward=model.xp_reward,
        )

    def require_exercise(self, session: Session, exercise_id: str) -> ExerciseInfo:
        exercise = self.find_exercise(session, exercise_id)
        if exercise is None:
            raise ContentNotFoundError(f"Exercise '{exercise_id}' does not exist.")
        return exercise

    def exercise_reward(self, session: Session, exercise_id: str) -> int | None:
        """Configured reward for an exercise; raises if the exercise is unknown."""
        return self.require_exercise(session, exercise_id).xp_reward

    def totals(self, session: Session) -> CurriculumTotals:
        total_modules = session.execute(
            select(func.count()).select_from(ModuleModel).where(ModuleModel.is_active.is_(True))
        ).scalar_one()
        total_lessons = session.execute(
            select(func.count()).select_from(LessonModel).where(LessonModel.is_active.is_(True))
        ).scalar_one()
        return CurriculumTotals(total_modules=total_modules, total_lessons=total_lessons)


content_repository = ContentRepository()

__all__ = ["ContentRepository", "content_repository"]
