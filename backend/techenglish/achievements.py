"""Achievement Unlocker.

Every achievement carries a condition string, ``name`` or ``name:argument``,
resolved through a registry of pure predicates over the learner's current
state: the user row, all progress records and, when the check was triggered by
closing a session, that session. Unlocking inserts a ``user_achievements`` row
and credits the achievement's reward in the same transaction; the unique
``(user_id, achievement_id)`` constraint turns concurrent duplicate unlocks into
no-ops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError

from .db.base import as_utc, utcnow
from .db.session import run_in_transaction, session_scope
from .errors import SessionNotFoundError, UserNotFoundError
from .identity import UserSnapshot
from .learning_sessions import LearningSession, SessionState, session_from_model
from .progress import ProgressRecord, record_from_model
from .scope import ScopeKind
from .telemetry import emit_event

if TYPE_CHECKING:
    from .db.models import AchievementModel

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AchievementDefinition(_CamelModel):
    slug: str
    title: str
    description: str = ""
    icon: str = ""
    badge_color: str = ""
    xp_reward: int = 0
    condition: str


class AchievementView(AchievementDefinition):
    id: str
    unlocked_at: Optional[datetime] = None


class UnlockedAchievement(_CamelModel):
    id: str
    slug: str
    title: str
    xp_reward: int
    unlocked_at: datetime


DEFAULT_ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        slug="first-correct-answer",
        title="Hello, World",
        description="Answer your first exercise correctly",
        icon="✅",
        badge_color="green",
        xp_reward=10,
        condition="first_exercise_correct",
    ),
    AchievementDefinition(
        slug="first-steps",
        title="First Steps",
        description="Complete your first lesson",
        icon="🎯",
        badge_color="green",
        xp_reward=50,
        condition="first_lesson_completed",
    ),
    AchievementDefinition(
        slug="on-a-roll",
        title="On a Roll",
        description="Keep a 7-day streak",
        icon="🔥",
        badge_color="orange",
        xp_reward=100,
        condition="streak:7",
    ),
    AchievementDefinition(
        slug="module-master",
        title="Module Master",
        description="Complete a whole module",
        icon="📚",
        badge_color="blue",
        xp_reward=150,
        condition="first_module_completed",
    ),
    AchievementDefinition(
        slug="flawless-session",
        title="Flawless",
        description="Finish a session with every answer correct",
        icon="💎",
        badge_color="purple",
        xp_reward=25,
        condition="perfect_session",
    ),
    AchievementDefinition(
        slug="ten-lessons",
        title="Bookworm",
        description="Complete ten lessons",
        icon="📖",
        badge_color="teal",
        xp_reward=200,
        condition="lessons_completed:10",
    ),
    AchievementDefinition(
        slug="xp-1000",
        title="Senior Learner",
        description="Earn 1000 XP",
        icon="🏆",
        badge_color="gold",
        xp_reward=100,
        condition="total_xp:1000",
    ),
)


@dataclass(frozen=True)
class EvaluationContext:
    user: UserSnapshot
    records: Sequence[ProgressRecord] = field(default_factory=tuple)
    session: Optional[LearningSession] = None

    def completed(self, kind: ScopeKind) -> int:
        return sum(1 for record in self.records if record.scope_kind is kind and record.status.is_complete)


Predicate = Callable[[EvaluationContext, Optional[int]], bool]

_CONDITIONS: Dict[str, Predicate] = {}


def condition(name: str) -> Callable[[Predicate], Predicate]:
    def _register(predicate: Predicate) -> Predicate:
        _CONDITIONS[name] = predicate
        return predicate

    return _register


def registered_conditions() -> List[str]:
    return sorted(_CONDITIONS)


@condition("first_exercise_correct")
def _first_exercise_correct(ctx: EvaluationContext, _: Optional[int]) -> bool:
    if ctx.session is not None and any(response.is_correct for response in ctx.session.responses):
        return True
    return ctx.completed(ScopeKind.EXERCISE) >= 1


@condition("first_lesson_completed")
def _first_lesson(ctx: EvaluationContext, _: Optional[int]) -> bool:
    return ctx.completed(ScopeKind.LESSON) >= 1


@condition("first_module_completed")
def _first_module(ctx: EvaluationContext, _: Optional[int]) -> bool:
    return ctx.completed(ScopeKind.MODULE) >= 1


@condition("lessons_completed")
def _lessons_completed(ctx: EvaluationContext, threshold: Optional[int]) -> bool:
    return ctx.completed(ScopeKind.LESSON) >= (threshold or 1)


@condition("modules_completed")
def _modules_completed(ctx: EvaluationContext, threshold: Optional[int]) -> bool:
    return ctx.completed(ScopeKind.MODULE) >= (threshold or 1)


@condition("streak")
def _streak(ctx: EvaluationContext, days: Optional[int]) -> bool:
    return ctx.user.streak >= (days or 1)


@condition("total_xp")
def _total_xp(ctx: EvaluationContext, threshold: Optional[int]) -> bool:
    return ctx.user.total_xp >= (threshold or 0)


@condition("perfect_session")
def _perfect_session(ctx: EvaluationContext, _: Optional[int]) -> bool:
    session = ctx.session
    if session is None or session.state is not SessionState.CLOSED or not session.responses:
        return False
    return all(response.is_correct for response in session.responses)


@condition("session_xp")
def _session_xp(ctx: EvaluationContext, threshold: Optional[int]) -> bool:
    session = ctx.session
    return session is not None and session.state is SessionState.CLOSED and session.xp_earned >= (threshold or 1)


def evaluate_condition(expression: str, ctx: EvaluationContext) -> bool:
    """Evaluate ``name`` or ``name:N``; unknown names and bad arguments are False."""
    name, _, raw_argument = expression.strip().partition(":")
    predicate = _CONDITIONS.get(name)
    if predicate is None:
        logger.warning("Unknown achievement condition %r", expression)
        return False
    argument: Optional[int] = None
    if raw_argument:
        try:
            argument = int(raw_argument)
        except ValueError:
            logger.warning("Achievement condition %r has a non-integer argument", expression)
            return False
    return predicate(ctx, argument)


def _definition_from_model(model: "AchievementModel") -> AchievementDefinition:
    return AchievementDefinition(
        slug=model.slug,
        title=model.title,
        description=model.description,
        icon=model.icon,
        badge_color=model.badge_color,
        xp_reward=model.xp_reward,
        condition=model.condition,
    )


class AchievementUnlocker:
    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def check(self, user_id: str, *, session_id: Optional[str] = None) -> List[UnlockedAchievement]:
        """Unlock every achievement whose condition now holds. Safe to call repeatedly.

        XP from an unlock counts toward ``total_xp`` conditions in the same call.
        """
        from .repositories.achievements import achievement_repository
        from .repositories.learning_sessions import learning_sessions
        from .repositories.progress_records import progress_records
        from .repositories.users import users

        with session_scope(commit=False) as session:
            user = users.get(session, user_id)
            if user is None:
                raise UserNotFoundError(f"User '{user_id}' does not exist.")
            records = [record_from_model(model) for model in progress_records.list_for_user(session, user_id)]
            closed_session = None
            if session_id is not None:
                model = learning_sessions.get_for_user(session, user_id, session_id)
                if model is None:
                    raise SessionNotFoundError(f"Session '{session_id}' was not found.")
                closed_session = session_from_model(model)
            unlocked_ids = achievement_repository.unlocked_for_user(session, user_id)
            candidates = [
                (model.id, _definition_from_model(model))
                for model in achievement_repository.list_catalog(session)
                if model.id not in unlocked_ids
            ]

        ctx = EvaluationContext(user=user, records=tuple(records), session=closed_session)
        granted: List[UnlockedAchievement] = []
        # Rewards raise total_xp, so rescan until a pass grants nothing.
        while candidates:
            remaining = []
            for achievement_id, definition in candidates:
                if not evaluate_condition(definition.condition, ctx):
                    remaining.append((achievement_id, definition))
                    continue
                unlocked = self._grant(user_id, achievement_id, definition)
                if unlocked is None:
                    continue
                granted.append(unlocked)
                ctx = replace(
                    ctx, user=ctx.user.model_copy(update={"total_xp": ctx.user.total_xp + unlocked.xp_reward})
                )
            if len(remaining) == len(candidates):
                break
            candidates = remaining
        return granted

    def check_best_effort(self, user_id: str, *, session_id: Optional[str] = None) -> List[UnlockedAchievement]:
        """Like :meth:`check`, but failures are logged instead of raised."""
        try:
            return self.check(user_id, session_id=session_id)
        except Exception:  # noqa: BLE001
            logger.exception("Achievement check failed for user=%s session=%s", user_id, session_id)
            return []

    def _grant(self, user_id: str, achievement_id: str, definition: AchievementDefinition) -> Optional[UnlockedAchievement]:
        from .repositories.achievements import achievement_repository
        from .repositories.users import users

        now = self._clock()

        def _unlock(session) -> UnlockedAchievement:
            record = achievement_repository.unlock(session, user_id, achievement_id, now=now)
            if definition.xp_reward > 0:
                users.credit_xp(
                    session,
                    user_id,
                    definition.xp_reward,
                    reason=f"achievement:{definition.slug}",
                    record_activity=False,
                    now=now,
                )
            return UnlockedAchievement(
                id=achievement_id,
                slug=definition.slug,
                title=definition.title,
                xp_reward=definition.xp_reward,
                unlocked_at=as_utc(record.unlocked_at),
            )

        try:
            with session_scope() as session:
                unlocked = _unlock(session)
        except IntegrityError:
            logger.info("Achievement %s already unlocked for user=%s", definition.slug, user_id)
            return None

        logger.info("Unlocked achievement %s for user=%s (+%d XP)", definition.slug, user_id, definition.xp_reward)
        emit_event(
            "achievement_unlocked",
            user_id=user_id,
            achievement=definition.slug,
            xp_reward=definition.xp_reward,
        )
        if definition.xp_reward:
            emit_event("xp_credited", user_id=user_id, amount=definition.xp_reward, reason="achievement")
        return unlocked

    def list_for_user(self, user_id: str) -> List[AchievementView]:
        from .repositories.achievements import achievement_repository

        with session_scope(commit=False) as session:
            unlocked = achievement_repository.unlocked_for_user(session, user_id)
            return [
                AchievementView(
                    id=model.id,
                    unlocked_at=as_utc(unlocked.get(model.id)),
                    **_definition_from_model(model).model_dump(),
                )
                for model in achievement_repository.list_catalog(session)
            ]

    def install_catalog(self, definitions: Sequence[AchievementDefinition] = DEFAULT_ACHIEVEMENTS) -> int:
        from .repositories.achievements import achievement_repository

        return run_in_transaction(
            lambda session: achievement_repository.ensure_catalog(session, definitions),
            label="achievement catalog install",
        )


achievement_unlocker = AchievementUnlocker()

__all__ = [
    "AchievementDefinition",
    "AchievementUnlocker",
    "AchievementView",
    "DEFAULT_ACHIEVEMENTS",
    "EvaluationContext",
    "UnlockedAchievement",
    "achievement_unlocker",
    "condition",
    "evaluate_condition",
    "registered_conditions",
]
