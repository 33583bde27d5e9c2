"""Achievement catalog and per-user unlock records."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import AchievementModel, UserAchievementModel

if TYPE_CHECKING:
    from ..achievements import AchievementDefinition

logger = logging.getLogger(__name__)


class AchievementRepository:
    def list_catalog(self, session: Session) -> List[AchievementModel]:
        stmt = select(AchievementModel).order_by(AchievementModel.xp_reward.asc(), AchievementModel.slug.asc())
        return list(session.execute(stmt).scalars().all())

    def unlocked_for_user(self, session: Session, user_id: str) -> Dict[str, datetime]:
        stmt = select(UserAchievementModel.achievement_id, UserAchievementModel.unlocked_at).where(
            UserAchievementModel.user_id == user_id
        )
        return {achievement_id: unlocked_at for achievement_id, unlocked_at in session.execute(stmt).all()}

    def unlock(self, session: Session, user_id: str, achievement_id: str, *, now: datetime) -> UserAchievementModel:
        """Insert the unlock row; a duplicate raises ``IntegrityError`` on flush."""
        record = UserAchievementModel(user_id=user_id, achievement_id=achievement_id, unlocked_at=now)
        session.add(record)
        session.flush()
        return record

    def ensure_catalog(self, session: Session, definitions: Iterable["AchievementDefinition"]) -> int:
        """Insert or refresh catalog entries keyed by slug. Returns the number of new rows."""
        existing = {model.slug: model for model in self.list_catalog(session)}
        created = 0
        for definition in definitions:
            model = existing.get(definition.slug)
            if model is None:
                model = AchievementModel(slug=definition.slug)
                session.add(model)
                created += 1
            model.title = definition.title
            model.description = definition.description
            model.icon = definition.icon
            model.badge_color = definition.badge_color
            model.xp_reward = definition.xp_reward
            model.condition = definition.condition
        session.flush()
        if created:
            logger.info("Installed %d achievement definition(s)", created)
        return created

    def delete_for_user(self, session: Session, user_id: str) -> int:
        result = session.execute(delete(UserAchievementModel).where(UserAchievementModel.user_id == user_id))
        return result.rowcount or 0


achievement_repository = AchievementRepository()

__all__ = ["AchievementRepository", "achievement_repository"]
