from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator

import pytest
from sqlalchemy.engine import Engine

from scripts.seed_curriculum import load_curriculum, seed_curriculum
from techenglish.config import get_settings
from techenglish.db import models  # noqa: F401
from techenglish.db.base import Base
from techenglish.db.session import dispose_engine, get_engine, session_scope
from techenglish.identity import Role, UserSnapshot
from techenglish.repositories.users import users


def _setup_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Engine:
    db_path = tmp_path / "techenglish.db"
    monkeypatch.setenv("TECHENGLISH_DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    engine = _setup_db(tmp_path, monkeypatch)
    yield engine
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture
def make_user(database: Engine) -> Callable[..., UserSnapshot]:
    def _make(email: str = "learner@example.com", *, role: Role = Role.USER, user_id: str | None = None) -> UserSnapshot:
        with session_scope() as session:
            return users.create(session, email=email, role=role, user_id=user_id)

    return _make


@pytest.fixture
def learner(make_user: Callable[..., UserSnapshot]) -> UserSnapshot:
    return make_user("learner@example.com", user_id="user-learner")


@pytest.fixture
def admin(make_user: Callable[..., UserSnapshot]) -> UserSnapshot:
    return make_user("admin@example.com", role=Role.ADMIN, user_id="user-admin")


@pytest.fixture
def curriculum(database: Engine) -> None:
    with session_scope() as session:
        seed_curriculum(session, load_curriculum(None))


@pytest.fixture
def total_xp(database: Engine) -> Callable[[str], int]:
    def _read(user_id: str) -> int:
        with session_scope(commit=False) as session:
            snapshot = users.get(session, user_id)
        assert snapshot is not None
        return snapshot.total_xp

    return _read
