from __future__ import annotations

from types import SimpleNamespace

from techenglish.scope import ScopeKey
from techenglish.xp import (
    DEFAULT_EXERCISE_XP,
    LESSON_COMPLETION_XP,
    MODULE_COMPLETION_XP,
    response_xp,
    session_xp,
    structural_completion_xp,
)


def test_fast_correct_answer_without_hints() -> None:
    assert response_xp(is_correct=True, hints_used=0, time_spent=5) == 75


def test_bonuses_clamp_at_zero() -> None:
    assert response_xp(is_correct=True, hints_used=6, time_spent=90) == 10
    assert response_xp(is_correct=True, hints_used=5, time_spent=60) == 10


def test_incorrect_answer_earns_nothing() -> None:
    assert response_xp(is_correct=False, hints_used=0, time_spent=1) == 0


def test_partial_bonuses() -> None:
    # 10 base + 3 unused hints * 2 + 20 seconds under the window
    assert response_xp(is_correct=True, hints_used=2, time_spent=40) == 36


def test_session_xp_sums_every_response() -> None:
    responses = [
        SimpleNamespace(is_correct=True, hints_used=0, time_spent=5),
        SimpleNamespace(is_correct=False, hints_used=0, time_spent=5),
        SimpleNamespace(is_correct=True, hints_used=6, time_spent=90),
    ]
    assert session_xp(responses) == 85
    assert session_xp([]) == 0


def test_structural_reward_by_deepest_scope() -> None:
    assert structural_completion_xp(ScopeKey(lesson_id="l"), completing=True) == LESSON_COMPLETION_XP
    assert structural_completion_xp(ScopeKey(module_id="m"), completing=True) == MODULE_COMPLETION_XP
    assert structural_completion_xp(ScopeKey(module_id="m", lesson_id="l"), completing=True) == 50
    assert structural_completion_xp(ScopeKey(level_id="A1"), completing=True) == 0


def test_exercise_reward_uses_configured_value_or_default() -> None:
    scope = ScopeKey(lesson_id="l", exercise_id="e")
    assert structural_completion_xp(scope, completing=True) == DEFAULT_EXERCISE_XP
    assert structural_completion_xp(scope, completing=True, exercise_reward=25) == 25
    assert structural_completion_xp(scope, completing=True, exercise_reward=0) == 0
    assert structural_completion_xp(scope, completing=True, exercise_reward=-5) == 0


def test_non_completing_update_earns_nothing() -> None:
    assert structural_completion_xp(ScopeKey(module_id="m"), completing=False) == 0
