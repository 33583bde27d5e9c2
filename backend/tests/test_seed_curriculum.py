from __future__ import annotations

import json

from scripts import db_metrics
from scripts.seed_curriculum import SAMPLE_CURRICULUM, load_curriculum, main, seed_curriculum
from techenglish.db.session import session_scope
from techenglish.repositories.content import content_repository
from techenglish.repositories.users import users


def test_sample_curriculum_seeds_content(database) -> None:
    with session_scope() as session:
        assert seed_curriculum(session, load_curriculum(None)) == 5

    with session_scope(commit=False) as session:
        totals = content_repository.totals(session)
        crud = content_repository.require_exercise(session, "ex-crud")
    assert (totals.total_modules, totals.total_lessons) == (3, 4)
    assert crud.answer_parts == ["create", "read", "update", "delete"]
    assert crud.xp_reward is None


def test_reseeding_updates_in_place(database, tmp_path) -> None:
    revised = json.loads(json.dumps(SAMPLE_CURRICULUM))
    revised["levels"][0]["modules"][0]["lessons"][0]["exercises"][1]["xp_reward"] = 40
    path = tmp_path / "curriculum.json"
    path.write_text(json.dumps(revised), encoding="utf-8")

    with session_scope() as session:
        seed_curriculum(session, load_curriculum(None))
    with session_scope() as session:
        seed_curriculum(session, load_curriculum(path))

    with session_scope(commit=False) as session:
        assert content_repository.exercise_reward(session, "ex-throws") == 40
        assert content_repository.totals(session).total_lessons == 4


def test_main_creates_admin_and_catalog(database) -> None:
    assert main(["--admin-email", "Ops@Example.com"]) == 0
    assert main(["--admin-email", "ops@example.com"]) == 0

    with session_scope(commit=False) as session:
        admin = users.find_by_email(session, "ops@example.com")
        counts = db_metrics.collect_counts(session)
    assert admin is not None and admin.role.value == "ADMIN"
    assert counts["users"] == 1
    assert counts["total_xp"] == 0


def test_main_rejects_unreadable_curriculum(database, tmp_path) -> None:
    assert main(["--curriculum", str(tmp_path / "missing.json")]) == 1
