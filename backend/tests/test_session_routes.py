from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from techenglish.achievements import achievement_unlocker
from techenglish.main import create_app

SESSIONS = "/api/v1/private/sessions"


@pytest.fixture
def client(database) -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def headers(learner) -> dict[str, str]:
    return {"X-User-Id": learner.id}


def test_session_round_trip(client, headers, curriculum) -> None:
    achievement_unlocker.install_catalog()
    started = client.post(SESSIONS, json={"lessonId": "a1-gs-tech-vocabulary"}, headers=headers)
    assert started.status_code == 201
    session_id = started.json()["session"]["id"]
    assert started.json()["session"]["state"] == "OPEN"

    answered = client.post(
        f"{SESSIONS}/{session_id}/responses",
        json={"exerciseId": "ex-throws", "answer": "throws", "timeSpent": 5, "hintsUsed": 0},
        headers=headers,
    )
    assert answered.status_code == 201
    assert answered.json()["response"]["isCorrect"] is True

    closed = client.post(f"{SESSIONS}/{session_id}/close", headers=headers)
    assert closed.status_code == 200
    body = closed.json()
    assert body["xpEarned"] == 75
    assert body["alreadyClosed"] is False
    assert body["session"]["state"] == "CLOSED"
    assert {item["slug"] for item in body["unlockedAchievements"]} == {"first-correct-answer", "flawless-session"}

    again = client.post(f"{SESSIONS}/{session_id}/close", headers=headers).json()
    assert again["alreadyClosed"] is True
    assert again["xpEarned"] == 75
    assert again["unlockedAchievements"] == []

    listed = client.get("/api/v1/private/achievements", headers=headers).json()["achievements"]
    unlocked = {item["slug"] for item in listed if item["unlockedAt"] is not None}
    assert unlocked == {"first-correct-answer", "flawless-session"}


def test_session_start_without_body(client, headers) -> None:
    response = client.post(SESSIONS, headers=headers)
    assert response.status_code == 201
    assert response.json()["session"]["lessonId"] is None


def test_answer_after_close_conflicts(client, headers, curriculum) -> None:
    session_id = client.post(SESSIONS, headers=headers).json()["session"]["id"]
    client.post(f"{SESSIONS}/{session_id}/close", headers=headers)

    response = client.post(
        f"{SESSIONS}/{session_id}/responses", json={"exerciseId": "ex-throws", "answer": "throws"}, headers=headers
    )
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_unknown_session_and_exercise_are_not_found(client, headers, curriculum) -> None:
    assert client.get(f"{SESSIONS}/does-not-exist", headers=headers).status_code == 404

    session_id = client.post(SESSIONS, headers=headers).json()["session"]["id"]
    response = client.post(
        f"{SESSIONS}/{session_id}/responses", json={"exerciseId": "ex-nope", "answer": "x"}, headers=headers
    )
    assert response.status_code == 404


def test_other_users_cannot_see_session(client, headers, make_user) -> None:
    other = make_user("other@example.com")
    session_id = client.post(SESSIONS, headers=headers).json()["session"]["id"]
    response = client.get(f"{SESSIONS}/{session_id}", headers={"X-User-Id": other.id})
    assert response.status_code == 404


def test_manual_achievement_check(client, headers) -> None:
    achievement_unlocker.install_catalog()
    response = client.post("/api/v1/private/achievements/check", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "unlockedAchievements": []}
