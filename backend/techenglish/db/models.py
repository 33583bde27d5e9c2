"""ORM models backing users, curriculum content, progress, sessions and achievements."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, utcnow

JSONType = JSON


def _uuid() -> str:
    return str(uuid.uuid4())


class UserModel(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="USER", nullable=False)
    level: Mapped[str] = mapped_column(String(8), default="A1", nullable=False)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ----------------------------------------------------------------------
# Curriculum content (read-only from the progress engine's perspective)
# ----------------------------------------------------------------------


class LevelModel(Base):
    __tablename__ = "levels"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    estimated_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prerequisites: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    modules: Mapped[list["ModuleModel"]] = relationship(back_populates="level")


class ModuleModel(Base):
    __tablename__ = "modules"
    __table_args__ = (Index("ix_modules_level", "level_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    level_id: Mapped[str] = mapped_column(String(36), ForeignKey("levels.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skills: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    level: Mapped[LevelModel] = relationship(back_populates="modules")
    lessons: Mapped[list["LessonModel"]] = relationship(back_populates="module")


class LessonModel(Base):
    __tablename__ = "lessons"
    __table_args__ = (Index("ix_lessons_module", "module_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    module_id: Mapped[str] = mapped_column(String(36), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    module: Mapped[ModuleModel] = relationship(back_populates="lessons")
    exercises: Mapped[list["ExerciseModel"]] = relationship(back_populates="lesson")


class ExerciseModel(Base):
    __tablename__ = "exercises"
    __table_args__ = (Index("ix_exercises_lesson", "lesson_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    lesson_id: Mapped[str] = mapped_column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    answer_parts: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    hints: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    xp_reward: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    lesson: Mapped[LessonModel] = relationship(back_populates="exercises")


# ----------------------------------------------------------------------
# Progress ledger
# ----------------------------------------------------------------------


class ProgressRecordModel(TimestampMixin, Base):
    __tablename__ = "progress_records"
    __table_args__ = (
        UniqueConstraint("user_id", "scope_key", name="uq_progress_user_scope"),
        Index("ix_progress_records_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    level_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    module_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lesson_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    exercise_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # NULLs never collide in a UNIQUE index, so uniqueness is keyed on this canonical string instead.
    scope_key: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="NOT_STARTED", nullable=False)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    best_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


# ----------------------------------------------------------------------
# Learning sessions
# ----------------------------------------------------------------------


class LearningSessionModel(Base):
    __tablename__ = "learning_sessions"
    __table_args__ = (Index("ix_learning_sessions_user_state", "user_id", "state"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lesson_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str] = mapped_column(String(16), default="OPEN", nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    xp_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exercises_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    responses: Mapped[list["ExerciseResponseModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ExerciseResponseModel.sequence",
    )

    __mapper_args__ = {"version_id_col": version}


class ExerciseResponseModel(Base):
    __tablename__ = "exercise_responses"
    __table_args__ = (UniqueConstraint("session_id", "sequence", name="uq_response_session_sequence"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learning_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    exercise_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    user_answer: Mapped[Any] = mapped_column(JSONType, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hints_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    session: Mapped[LearningSessionModel] = relationship(back_populates="responses")


# ----------------------------------------------------------------------
# Achievements
# ----------------------------------------------------------------------


class AchievementModel(Base):
    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    icon: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    badge_color: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    condition: Mapped[str] = mapped_column(String(128), nullable=False)


class UserAchievementModel(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    achievement: Mapped[AchievementModel] = relationship()


class PersistenceAuditEventModel(Base):
    __tablename__ = "persistence_audit_events"
    __table_args__ = (Index("ix_audit_events_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    actor: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


__all__ = [
    "AchievementModel",
    "ExerciseModel",
    "ExerciseResponseModel",
    "LearningSessionModel",
    "LessonModel",
    "LevelModel",
    "ModuleModel",
    "PersistenceAuditEventModel",
    "ProgressRecordModel",
    "UserAchievementModel",
    "UserModel",
]
