"""Request and response payloads for the HTTP surface (camelCase on the wire)."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .achievements import AchievementView, UnlockedAchievement
from .identity import Role, UserSnapshot
from .learning_sessions import ExerciseResponse, LearningSession
from .progress import ProgressRecord
from .stats import ProgressStats


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSummary(ApiModel):
    id: str
    role: Role
    level: str
    total_xp: int
    streak: int
    last_active: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, user: UserSnapshot) -> "UserSummary":
        return cls(
            id=user.id,
            role=user.role,
            level=user.level,
            total_xp=user.total_xp,
            streak=user.streak,
            last_active=user.last_active,
        )


class ErrorPayload(ApiModel):
    success: bool = False
    error: str
    details: List[object] = Field(default_factory=list)


class ProgressUpdateResponse(ApiModel):
    success: bool = True
    progress_record: ProgressRecord
    xp_earned: int
    unlocked_achievements: List[UnlockedAchievement] = Field(default_factory=list)


class ProgressListResponse(ApiModel):
    success: bool = True
    progress_records: List[ProgressRecord]
    stats: ProgressStats
    user: Optional[UserSummary] = None


class SessionStartRequest(ApiModel):
    lesson_id: Optional[str] = Field(default=None, max_length=64)


class SessionPayload(ApiModel):
    success: bool = True
    session: LearningSession


class ResponseRecordedPayload(ApiModel):
    success: bool = True
    response: ExerciseResponse


class SessionClosePayload(ApiModel):
    success: bool = True
    session: LearningSession
    xp_earned: int
    already_closed: bool
    unlocked_achievements: List[UnlockedAchievement] = Field(default_factory=list)


class AchievementListPayload(ApiModel):
    success: bool = True
    achievements: List[AchievementView]


class AchievementCheckPayload(ApiModel):
    success: bool = True
    unlocked_achievements: List[UnlockedAchievement]


class AdminResetRequest(ApiModel):
    user_id: str = Field(..., min_length=1)


class AdminResetPayload(ApiModel):
    success: bool = True
    user_id: str
    progress_records: int
    sessions: int
    achievements: int


class SessionSweepPayload(ApiModel):
    success: bool = True
    expired: int
    session_ids: List[str] = Field(default_factory=list)


__all__ = [
    "AchievementCheckPayload",
    "AchievementListPayload",
    "AdminResetPayload",
    "AdminResetRequest",
    "ApiModel",
    "ErrorPayload",
    "ProgressListResponse",
    "ProgressUpdateResponse",
    "ResponseRecordedPayload",
    "SessionClosePayload",
    "SessionPayload",
    "SessionStartRequest",
    "SessionSweepPayload",
    "UserSummary",
]
