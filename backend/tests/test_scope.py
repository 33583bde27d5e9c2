from __future__ import annotations

import pytest

from techenglish.errors import ProgressValidationError
from techenglish.progress import ProgressUpdate
from techenglish.scope import ScopeKey, ScopeKind, resolve_scope


def test_resolve_scope_uses_only_supplied_fields() -> None:
    scope = resolve_scope({"lesson_id": "lesson-1"})
    assert scope == ScopeKey(lesson_id="lesson-1")
    assert scope.kind is ScopeKind.LESSON
    assert scope.canonical() == '[null,null,"lesson-1",null]'


def test_absent_fields_are_not_wildcards() -> None:
    lesson_only = resolve_scope({"lesson_id": "lesson-1"})
    with_module = resolve_scope({"module_id": "module-1", "lesson_id": "lesson-1"})
    assert lesson_only != with_module
    assert lesson_only.canonical() != with_module.canonical()


def test_deepest_field_decides_kind() -> None:
    assert resolve_scope({"level_id": "A1"}).kind is ScopeKind.LEVEL
    assert resolve_scope({"level_id": "A1", "module_id": "m"}).kind is ScopeKind.MODULE
    assert resolve_scope({"module_id": "m", "exercise_id": "e"}).kind is ScopeKind.EXERCISE


def test_resolve_scope_reads_request_objects() -> None:
    update = ProgressUpdate(moduleId="module-7", status="IN_PROGRESS")
    scope = resolve_scope(update)
    assert scope.module_id == "module-7"
    assert scope.as_columns() == {
        "level_id": None,
        "module_id": "module-7",
        "lesson_id": None,
        "exercise_id": None,
    }


def test_identifiers_are_trimmed() -> None:
    assert resolve_scope({"exercise_id": "  ex-1 "}) == ScopeKey(exercise_id="ex-1")


@pytest.mark.parametrize("payload", [{}, {"lesson_id": None}, {"lesson_id": "   ", "module_id": ""}])
def test_request_without_any_scope_is_rejected(payload) -> None:
    with pytest.raises(ProgressValidationError):
        resolve_scope(payload)


def test_non_string_identifier_is_rejected() -> None:
    with pytest.raises(ProgressValidationError):
        resolve_scope({"lesson_id": 42})
