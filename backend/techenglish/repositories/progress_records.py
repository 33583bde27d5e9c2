"""Session-level persistence for per-user progress records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import ProgressRecordModel
from ..progress import ProgressStatus, ProgressUpdate
from ..scope import ScopeKey

logger = logging.getLogger(__name__)


class ProgressRecordRepository:
    def find(self, session: Session, user_id: str, scope: ScopeKey) -> Optional[ProgressRecordModel]:
        stmt = select(ProgressRecordModel).where(
            ProgressRecordModel.user_id == user_id,
            ProgressRecordModel.scope_key == scope.canonical(),
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_for_user(self, session: Session, user_id: str) -> List[ProgressRecordModel]:
        stmt = (
            select(ProgressRecordModel)
            .where(ProgressRecordModel.user_id == user_id)
            .order_by(ProgressRecordModel.updated_at.desc(), ProgressRecordModel.id.asc())
        )
        return list(session.execute(stmt).scalars().all())

    def create(
        self,
        session: Session,
        user_id: str,
        scope: ScopeKey,
        update: ProgressUpdate,
        *,
        reward: int,
        now: datetime,
    ) -> ProgressRecordModel:
        status = update.status or ProgressStatus.NOT_STARTED
        model = ProgressRecordModel(
            user_id=user_id,
            scope_key=scope.canonical(),
            status=status.value,
            score=update.score,
            best_score=update.score,
            time_spent=update.time_spent or 0,
            attempts=update.attempts or 1,
            xp_earned=reward,
            completed_at=now if status is ProgressStatus.COMPLETED else None,
            **scope.as_columns(),
        )
        session.add(model)
        session.flush()
        return model

    def merge(
        self,
        session: Session,
        model: ProgressRecordModel,
        update: ProgressUpdate,
        *,
        status: ProgressStatus,
        reward: int,
        completing: bool,
        now: datetime,
    ) -> ProgressRecordModel:
        """Fold an update into an existing record.

        ``score`` and ``status`` are last-write-wins; ``attempts``, ``time_spent``
        and ``xp_earned`` accumulate; ``best_score`` only rises; ``completed_at``
        is written once.
        """
        model.status = status.value
        if update.score is not None:
            model.score = update.score
            model.best_score = update.score if model.best_score is None else max(model.best_score, update.score)
        model.time_spent = (model.time_spent or 0) + (update.time_spent or 0)
        model.attempts = (model.attempts or 0) + (update.attempts or 1)
        model.xp_earned = (model.xp_earned or 0) + reward
        if completing and model.completed_at is None:
            model.completed_at = now
        model.updated_at = now
        session.flush()
        return model

    def delete_for_user(self, session: Session, user_id: str) -> int:
        result = session.execute(delete(ProgressRecordModel).where(ProgressRecordModel.user_id == user_id))
        return result.rowcount or 0


progress_records = ProgressRecordRepository()

__all__ = ["ProgressRecordRepository", "progress_records"]
