"""
XP reward calculation.

Two independent reward paths feed a learner's total:

* structural completion rewards, a fixed award the first time a level, module,
  lesson or exercise scope is marked COMPLETED;
* per-response rewards, computed for every exercise answer in a learning
  session from correctness, hints used and time taken.

Neither path ever returns a negative amount.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

from .scope import ScopeKey, ScopeKind

logger = logging.getLogger(__name__)

DEFAULT_EXERCISE_XP = 10
LESSON_COMPLETION_XP = 50
MODULE_COMPLETION_XP = 100

RESPONSE_BASE_XP = 10
HINT_ALLOWANCE = 5
HINT_BONUS_PER_UNUSED = 2
SPEED_WINDOW_SECONDS = 60


class ScoredResponse(Protocol):
    is_correct: bool
    hints_used: int
    time_spent: int


def structural_completion_xp(
    scope: ScopeKey,
    *,
    completing: bool,
    exercise_reward: Optional[int] = None,
) -> int:
    """Fixed reward for the deepest scope field present.

    Args:
        scope: Target of the progress update.
        completing: True only when this update moves the scope into COMPLETED
            for the first time. Any other update earns nothing.
        exercise_reward: The exercise's configured reward, if the content
            store knows it. Falls back to ``DEFAULT_EXERCISE_XP``.

    Returns:
        XP to credit; 0 for level-only scopes and non-completing updates.
    """
    if not completing:
        return 0

    kind = scope.kind
    if kind is ScopeKind.EXERCISE:
        xp = exercise_reward if exercise_reward is not None else DEFAULT_EXERCISE_XP
    elif kind is ScopeKind.LESSON:
        xp = LESSON_COMPLETION_XP
    elif kind is ScopeKind.MODULE:
        xp = MODULE_COMPLETION_XP
    else:
        xp = 0

    xp = max(0, int(xp))
    logger.debug("Structural reward for %s scope %s: %d", kind.value, scope.canonical(), xp)
    return xp


def response_xp(*, is_correct: bool, hints_used: int, time_spent: int) -> int:
    """XP for a single exercise answer.

    Correct answers earn the base reward, 2 XP per unused hint out of 5, and
    one XP per second under 60. Incorrect answers earn nothing.
    """
    if not is_correct:
        return 0
    hint_bonus = max(0, HINT_ALLOWANCE - hints_used) * HINT_BONUS_PER_UNUSED
    speed_bonus = max(0, SPEED_WINDOW_SECONDS - time_spent)
    return RESPONSE_BASE_XP + hint_bonus + speed_bonus


def session_xp(responses: Iterable[ScoredResponse]) -> int:
    return sum(
        response_xp(is_correct=r.is_correct, hints_used=r.hints_used, time_spent=r.time_spent)
        for r in responses
    )


__all__ = [
    "DEFAULT_EXERCISE_XP",
    "LESSON_COMPLETION_XP",
    "MODULE_COMPLETION_XP",
    "ScoredResponse",
    "response_xp",
    "session_xp",
    "structural_completion_xp",
]
