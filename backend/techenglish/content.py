"""Curriculum content as seen by the progress engine, plus answer checking."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

from pydantic import BaseModel, Field

Answer = Union[str, List[str]]


class ExerciseInfo(BaseModel):
    exercise_id: str
    lesson_id: str
    question: str
    correct_answer: str
    answer_parts: List[str] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    xp_reward: Optional[int] = None

    @property
    def is_multi_part(self) -> bool:
        return bool(self.answer_parts)


class CurriculumTotals(BaseModel):
    total_modules: int = 0
    total_lessons: int = 0


def normalize_answer(value: str) -> str:
    return value.strip().lower()


def _split_parts(answer: Answer) -> List[str]:
    if isinstance(answer, str):
        return [part for part in (normalize_answer(p) for p in answer.split(",")) if part]
    return [part for part in (normalize_answer(p) for p in answer if isinstance(p, str)) if part]


def is_correct_answer(exercise: ExerciseInfo, answer: Answer) -> bool:
    """Case-insensitive, whitespace-trimmed comparison against the canonical answer.

    Multi-part exercises compare as sets: every expected part must be present and
    nothing else may be, in any order. A single string is split on commas.
    """
    if exercise.is_multi_part:
        expected = {normalize_answer(part) for part in exercise.answer_parts}
        return set(_split_parts(answer)) == expected
    if not isinstance(answer, str):
        return False
    return normalize_answer(answer) == normalize_answer(exercise.correct_answer)


def answer_preview(answer: Answer, limit: int = 80) -> str:
    text = answer if isinstance(answer, str) else ", ".join(answer)
    return text if len(text) <= limit else f"{text[: limit - 1]}…"


def ordered_strings(values: Optional[Sequence[object]]) -> List[str]:
    """Coerce a stored sequence into an ordered list of strings, dropping blanks."""
    return [str(value).strip() for value in values or [] if str(value).strip()]


__all__ = [
    "Answer",
    "CurriculumTotals",
    "ExerciseInfo",
    "answer_preview",
    "is_correct_answer",
    "normalize_answer",
    "ordered_strings",
]
