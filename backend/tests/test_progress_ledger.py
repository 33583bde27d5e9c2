from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from threading import Barrier

import pytest
from sqlalchemy.exc import OperationalError

from techenglish.errors import ConflictError, PersistenceError, ProgressValidationError
from techenglish.progress import ProgressLedger, ProgressStatus, ProgressUpdate, effective_status
from techenglish.repositories import progress_records as progress_records_module
from techenglish.repositories import users as users_module
from techenglish.scope import ScopeKey
from techenglish.telemetry import capture


def _update(**fields) -> ProgressUpdate:
    return ProgressUpdate(**fields)


def test_first_update_creates_record_with_defaults(learner) -> None:
    ledger = ProgressLedger()
    result = ledger.upsert(learner.id, _update(lesson_id="lesson-1"))

    record = result.record
    assert record.status is ProgressStatus.NOT_STARTED
    assert record.attempts == 1
    assert record.time_spent == 0
    assert record.xp_earned == 0
    assert record.completed_at is None
    assert result.xp_earned == 0


def test_attempts_count_every_call(learner) -> None:
    ledger = ProgressLedger()
    for _ in range(3):
        result = ledger.upsert(learner.id, _update(module_id="module-1", status="IN_PROGRESS"))
    assert result.record.attempts == 3


def test_attempts_honour_caller_deltas(learner) -> None:
    ledger = ProgressLedger()
    ledger.upsert(learner.id, _update(lesson_id="lesson-1", attempts=2))
    result = ledger.upsert(learner.id, _update(lesson_id="lesson-1", attempts=3))
    assert result.record.attempts == 5


def test_best_score_is_running_max(learner) -> None:
    ledger = ProgressLedger()
    for score in (40, 90, 70):
        result = ledger.upsert(learner.id, _update(exercise_id="ex-x", score=score))
    assert result.record.score == 70
    assert result.record.best_score == 90


def test_time_spent_accumulates(learner) -> None:
    ledger = ProgressLedger()
    ledger.upsert(learner.id, _update(lesson_id="lesson-1", time_spent=30))
    latest = ledger.upsert(learner.id, _update(lesson_id="lesson-1", time_spent=45))
    untouched = ledger.upsert(learner.id, _update(lesson_id="lesson-1"))
    assert latest.record.time_spent == 75
    assert untouched.record.time_spent == 75


def test_first_lesson_completion_credits_fifty(learner, total_xp) -> None:
    ledger = ProgressLedger()
    with capture() as events:
        result = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))

    assert result.xp_earned == 50
    assert result.completed_now is True
    assert result.record.xp_earned == 50
    assert result.record.completed_at is not None
    assert total_xp(learner.id) == 50
    assert [event.name for event in events] == ["progress_updated", "xp_credited"]


def test_repeated_completion_is_not_rewarded_again(learner, total_xp) -> None:
    ledger = ProgressLedger()
    first = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))
    second = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))

    assert second.xp_earned == 0
    assert second.completed_now is False
    assert second.record.completed_at == first.record.completed_at
    assert second.record.xp_earned == 50
    assert second.record.attempts == 2
    assert total_xp(learner.id) == 50


def test_module_completion_after_progress(learner, total_xp) -> None:
    ledger = ProgressLedger()
    ledger.upsert(learner.id, _update(module_id="module-1", status="IN_PROGRESS"))
    result = ledger.upsert(learner.id, _update(module_id="module-1", status="COMPLETED"))
    assert result.xp_earned == 100
    assert total_xp(learner.id) == 100


def test_exercise_completion_uses_content_reward(learner, curriculum, total_xp) -> None:
    ledger = ProgressLedger()
    configured = ledger.upsert(learner.id, _update(exercise_id="ex-throws", status="COMPLETED"))
    unset = ledger.upsert(learner.id, _update(exercise_id="ex-dynamic-variable", status="COMPLETED"))
    assert configured.xp_earned == 15
    assert unset.xp_earned == 10
    assert total_xp(learner.id) == 25


def test_unknown_exercise_falls_back_to_default_reward(learner, total_xp) -> None:
    ledger = ProgressLedger()
    result = ledger.upsert(learner.id, _update(exercise_id="ex-missing", status="COMPLETED"))
    assert result.xp_earned == 10
    assert total_xp(learner.id) == 10


def test_status_does_not_regress_without_explicit_request(learner, total_xp) -> None:
    ledger = ProgressLedger()
    completed = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))

    kept = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="IN_PROGRESS"))
    assert kept.record.status is ProgressStatus.COMPLETED

    regressed = ledger.upsert(
        learner.id, _update(lesson_id="lesson-1", status="IN_PROGRESS", allow_regression=True)
    )
    assert regressed.record.status is ProgressStatus.IN_PROGRESS
    assert regressed.record.completed_at == completed.record.completed_at

    again = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))
    assert again.xp_earned == 0
    assert again.record.completed_at == completed.record.completed_at
    assert total_xp(learner.id) == 50


def test_mastered_without_completion_earns_no_structural_xp(learner, total_xp) -> None:
    ledger = ProgressLedger()
    first = ledger.upsert(learner.id, _update(lesson_id="lesson-7", status="MASTERED"))
    assert first.xp_earned == 0
    assert first.record.completed_at is None
    assert first.record.status.is_complete

    second = ledger.upsert(learner.id, _update(lesson_id="lesson-7", status="COMPLETED"))
    assert second.record.status is ProgressStatus.MASTERED
    assert second.xp_earned == 0
    assert second.completed_now is False
    assert second.record.completed_at is None
    assert total_xp(learner.id) == 0


def test_effective_status_ordering() -> None:
    assert effective_status(ProgressStatus.MASTERED, ProgressStatus.COMPLETED, allow_regression=False) is (
        ProgressStatus.MASTERED
    )
    assert effective_status(ProgressStatus.IN_PROGRESS, None, allow_regression=False) is ProgressStatus.IN_PROGRESS
    assert effective_status(ProgressStatus.IN_PROGRESS, ProgressStatus.MASTERED, allow_regression=False) is (
        ProgressStatus.MASTERED
    )


def test_missing_scope_is_rejected_without_side_effects(learner, total_xp) -> None:
    ledger = ProgressLedger()
    with pytest.raises(ProgressValidationError):
        ledger.upsert(learner.id, _update(status="COMPLETED", score=80))
    assert ledger.list_records(learner.id) == []
    assert total_xp(learner.id) == 0


def test_xp_credit_failure_rolls_back_progress_write(learner, total_xp, monkeypatch) -> None:
    def _fail(*args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))

    monkeypatch.setattr(users_module.users, "credit_xp", _fail)
    ledger = ProgressLedger()
    with pytest.raises(PersistenceError):
        ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))

    assert ledger.find(learner.id, ScopeKey(lesson_id="lesson-1")) is None
    assert total_xp(learner.id) == 0


def test_concurrent_upserts_for_same_scope_serialize(learner) -> None:
    ledger = ProgressLedger()
    start = Barrier(2)

    def _submit() -> None:
        start.wait()
        ledger.upsert(learner.id, _update(module_id="module-1"))

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(_submit) for _ in range(2)]
        for future in futures:
            future.result()

    record = ledger.find(learner.id, ScopeKey(module_id="module-1"))
    assert record is not None
    assert record.attempts == 2


def test_stale_read_is_reconciled_by_unique_constraint(learner, total_xp, monkeypatch) -> None:
    ledger = ProgressLedger(max_retries=3)
    ledger.upsert(learner.id, _update(lesson_id="lesson-9", status="COMPLETED"))

    real_find = progress_records_module.progress_records.find
    calls = {"count": 0}

    def _stale_once(session, user_id, scope):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return real_find(session, user_id, scope)

    monkeypatch.setattr(progress_records_module.progress_records, "find", _stale_once)
    result = ledger.upsert(learner.id, _update(lesson_id="lesson-9", status="COMPLETED"))

    assert calls["count"] >= 2
    assert result.xp_earned == 0
    assert result.record.attempts == 2
    assert result.record.xp_earned == 50
    assert total_xp(learner.id) == 50


def test_conflict_surfaces_after_retries_are_exhausted(learner, monkeypatch) -> None:
    ProgressLedger().upsert(learner.id, _update(lesson_id="lesson-3"))
    monkeypatch.setattr(progress_records_module.progress_records, "find", lambda *args: None)

    with pytest.raises(ConflictError):
        ProgressLedger(max_retries=2).upsert(learner.id, _update(lesson_id="lesson-3"))


def test_zero_retries_means_a_single_attempt(learner, monkeypatch) -> None:
    ProgressLedger().upsert(learner.id, _update(lesson_id="lesson-4"))
    calls = []
    monkeypatch.setattr(progress_records_module.progress_records, "find", lambda *args: calls.append(args))

    with pytest.raises(ConflictError):
        ProgressLedger(max_retries=0).upsert(learner.id, _update(lesson_id="lesson-4"))
    assert len(calls) == 1


def test_completion_updates_streak_and_last_active(learner) -> None:
    day_one = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    clock = {"now": day_one}
    ledger = ProgressLedger(clock=lambda: clock["now"])

    first = ledger.upsert(learner.id, _update(lesson_id="lesson-1", status="COMPLETED"))
    assert first.user is not None
    assert first.user.streak == 1
    assert first.user.last_active == day_one

    clock["now"] = day_one + timedelta(days=1)
    second = ledger.upsert(learner.id, _update(lesson_id="lesson-2", status="COMPLETED"))
    assert second.user is not None
    assert second.user.streak == 2


def test_records_are_listed_per_user(make_user) -> None:
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    ledger = ProgressLedger()
    ledger.upsert(alice.id, _update(lesson_id="lesson-1"))
    ledger.upsert(alice.id, _update(lesson_id="lesson-2"))
    ledger.upsert(bob.id, _update(lesson_id="lesson-1"))

    assert {record.lesson_id for record in ledger.list_records(alice.id)} == {"lesson-1", "lesson-2"}
    assert len(ledger.list_records(bob.id)) == 1
