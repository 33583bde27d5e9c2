"""Administrative utilities for progress resets and session expiry sweeps."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from .accrual import reset_user
from .api_models import AdminResetPayload, AdminResetRequest, SessionSweepPayload
from .identity import UserSnapshot, require_admin
from .learning_sessions import session_accumulator
from .rate_limit import enforce_rate_limit

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.post("/progress/reset", response_model=AdminResetPayload, status_code=status.HTTP_200_OK)
def admin_reset_progress(payload: AdminResetRequest, admin: UserSnapshot = Depends(require_admin)) -> AdminResetPayload:
    summary = reset_user(payload.user_id.strip(), actor=admin.id)
    return AdminResetPayload(
        user_id=summary.user_id,
        progress_records=summary.progress_records,
        sessions=summary.sessions,
        achievements=summary.achievements,
    )


@router.post("/sessions/expire", response_model=SessionSweepPayload, status_code=status.HTTP_200_OK)
def admin_expire_sessions(admin: UserSnapshot = Depends(require_admin)) -> SessionSweepPayload:
    expired = session_accumulator.expire_stale()
    return SessionSweepPayload(expired=len(expired), session_ids=[session.id for session in expired])
