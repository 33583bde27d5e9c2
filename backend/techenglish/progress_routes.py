"""Progress ledger endpoints for the signed-in learner."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from .accrual import progress_overview, submit_progress
from .api_models import ProgressListResponse, ProgressUpdateResponse, UserSummary
from .identity import UserSnapshot, require_user
from .progress import ProgressUpdate
from .rate_limit import enforce_rate_limit

router = APIRouter(
    prefix="/api/v1/private/progress",
    tags=["progress"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.post("", response_model=ProgressUpdateResponse, status_code=status.HTTP_200_OK)
def update_progress(payload: ProgressUpdate, user: UserSnapshot = Depends(require_user)) -> ProgressUpdateResponse:
    submission = submit_progress(user.id, payload)
    return ProgressUpdateResponse(
        progress_record=submission.result.record,
        xp_earned=submission.result.xp_earned,
        unlocked_achievements=submission.unlocked,
    )


@router.get("", response_model=ProgressListResponse, status_code=status.HTTP_200_OK)
def list_progress(user: UserSnapshot = Depends(require_user)) -> ProgressListResponse:
    overview = progress_overview(user.id)
    return ProgressListResponse(
        progress_records=overview.records,
        stats=overview.stats,
        user=UserSummary.from_snapshot(overview.user) if overview.user else None,
    )
