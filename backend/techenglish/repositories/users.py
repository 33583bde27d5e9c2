"""User rows as mutated by the progress engine: XP credits, activity and streaks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.base import as_utc, utcnow
from ..db.models import PersistenceAuditEventModel, UserModel
from ..errors import UserNotFoundError
from ..identity import Role, UserSnapshot

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("techenglish.audit")


def next_streak(last_active: Optional[datetime], streak: int, now: datetime) -> int:
    """Consecutive-day counter after activity at ``now`` (UTC calendar days)."""
    if last_active is None:
        return 1
    gap = (as_utc(now).date() - as_utc(last_active).date()).days
    if gap <= 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1


class UserRepository:
    def get(self, session: Session, user_id: str) -> Optional[UserSnapshot]:
        model = session.get(UserModel, user_id)
        return self._to_domain(model) if model else None

    def find_by_email(self, session: Session, email: str) -> Optional[UserSnapshot]:
        stmt = select(UserModel).where(UserModel.email == email.strip().lower())
        model = session.execute(stmt).scalar_one_or_none()
        return self._to_domain(model) if model else None

    def create(
        self,
        session: Session,
        *,
        email: str,
        user_id: Optional[str] = None,
        name: Optional[str] = None,
        role: Role = Role.USER,
        level: str = "A1",
    ) -> UserSnapshot:
        model = UserModel(email=email.strip().lower(), name=name, role=role.value, level=level)
        if user_id:
            model.id = user_id
        session.add(model)
        session.flush()
        return self._to_domain(model)

    def credit_xp(
        self,
        session: Session,
        user_id: str,
        amount: int,
        *,
        reason: str,
        record_activity: bool = True,
        now: Optional[datetime] = None,
    ) -> UserSnapshot:
        """Add ``amount`` to total_xp inside the caller's transaction.

        The increment is issued as ``total_xp = total_xp + :amount`` so credits
        from different scopes of the same user never overwrite each other.
        """
        if amount < 0:
            raise ValueError("XP credits cannot be negative.")
        model = session.get(UserModel, user_id)
        if model is None:
            raise UserNotFoundError(f"User '{user_id}' does not exist.")
        now = now or utcnow()

        values: Dict[str, Any] = {"total_xp": UserModel.total_xp + amount}
        if record_activity:
            values["streak"] = next_streak(model.last_active, model.streak, now)
            values["last_active"] = now
        session.execute(update(UserModel).where(UserModel.id == user_id).values(**values))
        session.flush()
        session.refresh(model)

        self.record_audit(session, user_id, "xp_credit", {"amount": amount, "reason": reason})
        logger.info("Credited %d XP to user=%s (%s); total=%d", amount, user_id, reason, model.total_xp)
        return self._to_domain(model)

    def reset(self, session: Session, user_id: str) -> None:
        session.execute(
            update(UserModel).where(UserModel.id == user_id).values(total_xp=0, streak=0, last_active=None)
        )

    def record_audit(
        self,
        session: Session,
        user_id: Optional[str],
        event_type: str,
        payload: Dict[str, Any],
        *,
        actor: str = "system",
    ) -> None:
        audit_logger.info("%s user=%s actor=%s", event_type, user_id, actor)
        session.add(
            PersistenceAuditEventModel(
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                actor=actor,
            )
        )

    @staticmethod
    def _to_domain(model: UserModel) -> UserSnapshot:
        return UserSnapshot(
            id=model.id,
            email=model.email,
            name=model.name,
            role=Role(model.role),
            level=model.level,
            total_xp=model.total_xp,
            streak=model.streak,
            last_active=as_utc(model.last_active),
        )


users = UserRepository()

__all__ = ["UserRepository", "next_streak", "users"]
