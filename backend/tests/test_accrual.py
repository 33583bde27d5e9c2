from __future__ import annotations

import pytest

from techenglish import accrual
from techenglish.achievements import achievement_unlocker
from techenglish.errors import UserNotFoundError
from techenglish.learning_sessions import ResponseSubmission, session_accumulator
from techenglish.progress import ProgressUpdate


@pytest.fixture
def catalog(database) -> None:
    achievement_unlocker.install_catalog()


def test_completion_reward_triggers_achievement_check(learner, catalog, total_xp) -> None:
    submission = accrual.submit_progress(learner.id, ProgressUpdate(lesson_id="lesson-1", status="COMPLETED"))

    assert submission.result.xp_earned == 50
    assert [achievement.slug for achievement in submission.unlocked] == ["first-steps"]
    assert total_xp(learner.id) == 100


def test_update_without_reward_skips_achievement_check(learner, catalog, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(achievement_unlocker, "check", lambda *args, **kwargs: calls.append(args) or [])

    submission = accrual.submit_progress(learner.id, ProgressUpdate(lesson_id="lesson-1", status="IN_PROGRESS"))
    assert submission.unlocked == []
    assert calls == []


def test_failed_achievement_check_keeps_progress(learner, catalog, total_xp, monkeypatch) -> None:
    def _boom(*args, **kwargs):
        raise RuntimeError("catalog unavailable")

    monkeypatch.setattr(achievement_unlocker, "check", _boom)
    submission = accrual.submit_progress(learner.id, ProgressUpdate(lesson_id="lesson-1", status="COMPLETED"))

    assert submission.result.xp_earned == 50
    assert submission.unlocked == []
    assert total_xp(learner.id) == 50


def test_perfect_session_unlocks_session_achievements(learner, curriculum, catalog, total_xp) -> None:
    started = session_accumulator.start(learner.id)
    session_accumulator.record_response(
        learner.id, started.id, ResponseSubmission(exercise_id="ex-throws", answer="throws", time_spent=5)
    )

    finished = accrual.finish_session(learner.id, started.id)
    again = accrual.finish_session(learner.id, started.id)

    assert finished.result.xp_earned == 75
    assert {achievement.slug for achievement in finished.unlocked} == {"first-correct-answer", "flawless-session"}
    assert again.result.closed_now is False
    assert again.unlocked == []
    assert total_xp(learner.id) == 75 + 10 + 25


def test_overview_combines_records_totals_and_user(learner, curriculum, total_xp) -> None:
    accrual.submit_progress(learner.id, ProgressUpdate(lesson_id="a1-gs-databases", status="COMPLETED", score=80))
    accrual.submit_progress(learner.id, ProgressUpdate(module_id="a1-getting-started", status="IN_PROGRESS", score=60))

    overview = accrual.progress_overview(learner.id)

    assert len(overview.records) == 2
    assert overview.stats.total_modules == 3
    assert overview.stats.total_lessons == 4
    assert overview.stats.completed_lessons == 1
    assert overview.stats.completed_modules == 0
    assert overview.stats.average_score == 70.0
    assert overview.stats.total_xp == total_xp(learner.id) == 50
    assert overview.stats.ledger_xp == 50
    assert overview.stats.streak == 1


def test_reset_clears_everything_for_one_user(make_user, curriculum, catalog, total_xp) -> None:
    target = make_user("target@example.com")
    bystander = make_user("bystander@example.com")
    for user in (target, bystander):
        accrual.submit_progress(user.id, ProgressUpdate(lesson_id="lesson-1", status="COMPLETED"))
    started = session_accumulator.start(target.id)
    session_accumulator.record_response(
        target.id, started.id, ResponseSubmission(exercise_id="ex-blocker", answer="blocker")
    )

    summary = accrual.reset_user(target.id, actor="admin@example.com")

    assert summary.progress_records == 1
    assert summary.sessions == 1
    assert summary.achievements == 1
    assert total_xp(target.id) == 0
    assert accrual.progress_overview(target.id).records == []
    assert all(view.unlocked_at is None for view in achievement_unlocker.list_for_user(target.id))
    assert total_xp(bystander.id) == 100


def test_reset_unknown_user(database) -> None:
    with pytest.raises(UserNotFoundError):
        accrual.reset_user("ghost", actor="admin")
