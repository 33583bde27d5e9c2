"""Resolve which (level, module, lesson, exercise) scope a progress update targets."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ProgressValidationError

SCOPE_FIELDS = ("level_id", "module_id", "lesson_id", "exercise_id")


class ScopeKind(str, Enum):
    LEVEL = "level"
    MODULE = "module"
    LESSON = "lesson"
    EXERCISE = "exercise"


@dataclass(frozen=True)
class ScopeKey:
    """Exact identity of a progress record for one user.

    Absent identifiers are ``None`` and match only ``None``; they are never
    wildcards. Two updates hit the same record iff all four fields are equal.
    """

    level_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    exercise_id: Optional[str] = None

    @property
    def kind(self) -> ScopeKind:
        """Deepest identifier supplied."""
        if self.exercise_id is not None:
            return ScopeKind.EXERCISE
        if self.lesson_id is not None:
            return ScopeKind.LESSON
        if self.module_id is not None:
            return ScopeKind.MODULE
        return ScopeKind.LEVEL

    def canonical(self) -> str:
        return json.dumps([self.level_id, self.module_id, self.lesson_id, self.exercise_id], separators=(",", ":"))

    def as_columns(self) -> dict[str, Optional[str]]:
        return {field: getattr(self, field) for field in SCOPE_FIELDS}


def _clean(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProgressValidationError(f"{field} must be a string identifier.")
    trimmed = value.strip()
    return trimmed or None


def resolve_scope(request: Any) -> ScopeKey:
    """Build the scope key from a mapping or an object carrying the four id fields."""
    if isinstance(request, Mapping):
        raw = {field: request.get(field) for field in SCOPE_FIELDS}
    else:
        raw = {field: getattr(request, field, None) for field in SCOPE_FIELDS}
    key = ScopeKey(**{field: _clean(value, field) for field, value in raw.items()})
    if all(getattr(key, field) is None for field in SCOPE_FIELDS):
        raise ProgressValidationError(
            "A progress update must target at least one of levelId, moduleId, lessonId or exerciseId."
        )
    return key


__all__ = ["SCOPE_FIELDS", "ScopeKey", "ScopeKind", "resolve_scope"]
