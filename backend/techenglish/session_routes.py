"""Learning session endpoints: start, answer, close."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from .accrual import finish_session
from .api_models import ResponseRecordedPayload, SessionClosePayload, SessionPayload, SessionStartRequest
from .identity import UserSnapshot, require_user
from .learning_sessions import ResponseSubmission, session_accumulator
from .rate_limit import enforce_rate_limit

router = APIRouter(
    prefix="/api/v1/private/sessions",
    tags=["sessions"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.post("", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
def start_session(
    payload: Optional[SessionStartRequest] = Body(default=None),
    user: UserSnapshot = Depends(require_user),
) -> SessionPayload:
    lesson_id = payload.lesson_id if payload else None
    return SessionPayload(session=session_accumulator.start(user.id, lesson_id=lesson_id))


@router.get("/{session_id}", response_model=SessionPayload)
def get_session(session_id: str, user: UserSnapshot = Depends(require_user)) -> SessionPayload:
    return SessionPayload(session=session_accumulator.get(user.id, session_id))


@router.post("/{session_id}/responses", response_model=ResponseRecordedPayload, status_code=status.HTTP_201_CREATED)
def record_response(
    session_id: str,
    payload: ResponseSubmission,
    user: UserSnapshot = Depends(require_user),
) -> ResponseRecordedPayload:
    return ResponseRecordedPayload(response=session_accumulator.record_response(user.id, session_id, payload))


@router.post("/{session_id}/close", response_model=SessionClosePayload)
def close_session(session_id: str, user: UserSnapshot = Depends(require_user)) -> SessionClosePayload:
    finished = finish_session(user.id, session_id)
    return SessionClosePayload(
        session=finished.result.session,
        xp_earned=finished.result.xp_earned,
        already_closed=not finished.result.closed_now,
        unlocked_achievements=finished.unlocked,
    )
