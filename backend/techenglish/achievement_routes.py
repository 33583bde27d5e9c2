"""Achievement catalog and manual unlock re-check."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .achievements import achievement_unlocker
from .api_models import AchievementCheckPayload, AchievementListPayload
from .identity import UserSnapshot, require_user
from .rate_limit import enforce_rate_limit

router = APIRouter(
    prefix="/api/v1/private/achievements",
    tags=["achievements"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.get("", response_model=AchievementListPayload)
def list_achievements(user: UserSnapshot = Depends(require_user)) -> AchievementListPayload:
    return AchievementListPayload(achievements=achievement_unlocker.list_for_user(user.id))


@router.post("/check", response_model=AchievementCheckPayload)
def check_achievements(user: UserSnapshot = Depends(require_user)) -> AchievementCheckPayload:
    return AchievementCheckPayload(unlocked_achievements=achievement_unlocker.check(user.id))
