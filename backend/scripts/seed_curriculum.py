"""Seed curriculum content, the achievement catalog and optional users.

Content is read from ``--curriculum`` (JSON) when given, otherwise from the
built-in sample. Rows are keyed by explicit ids so re-running the script
updates in place instead of duplicating.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from techenglish.achievements import achievement_unlocker
from techenglish.db.base import Base
from techenglish.db.models import ExerciseModel, LessonModel, LevelModel, ModuleModel
from techenglish.db.session import get_engine, session_scope
from techenglish.identity import Role
from techenglish.repositories.users import users

logger = logging.getLogger("techenglish.seed")


class ExerciseSeed(BaseModel):
    id: str
    question: str
    correct_answer: str
    answer_parts: List[str] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    xp_reward: Optional[int] = None


class LessonSeed(BaseModel):
    id: str
    title: str
    duration_minutes: int = 10
    exercises: List[ExerciseSeed] = Field(default_factory=list)


class ModuleSeed(BaseModel):
    id: str
    title: str
    skills: List[str] = Field(default_factory=list)
    lessons: List[LessonSeed] = Field(default_factory=list)


class LevelSeed(BaseModel):
    id: str
    code: str
    name: str
    description: str = ""
    estimated_hours: Optional[int] = None
    prerequisites: List[str] = Field(default_factory=list)
    modules: List[ModuleSeed] = Field(default_factory=list)


class CurriculumSeed(BaseModel):
    levels: List[LevelSeed]


SAMPLE_CURRICULUM = {
    "levels": [
        {
            "id": "level-a1",
            "code": "A1",
            "name": "Foundation",
            "description": "Basic phrases for everyday work in a software team",
            "estimated_hours": 20,
            "modules": [
                {
                    "id": "a1-getting-started",
                    "title": "Getting Started",
                    "skills": ["vocabulary", "reading"],
                    "lessons": [
                        {
                            "id": "a1-gs-tech-vocabulary",
                            "title": "Essential Technical Vocabulary",
                            "duration_minutes": 15,
                            "exercises": [
                                {
                                    "id": "ex-dynamic-variable",
                                    "question": 'What is the term for "a variable that can hold different data types"?',
                                    "correct_answer": "Dynamic variable",
                                    "hints": [
                                        "Think about variables that can change their type",
                                        "Consider languages like JavaScript",
                                    ],
                                },
                                {
                                    "id": "ex-throws",
                                    "question": 'Complete: "The function _____ an error when input is invalid."',
                                    "correct_answer": "throws",
                                    "hints": ["Think about error handling terminology"],
                                    "xp_reward": 15,
                                },
                            ],
                        },
                        {
                            "id": "a1-gs-databases",
                            "title": "Databases and Storage",
                            "duration_minutes": 20,
                            "exercises": [
                                {
                                    "id": "ex-crud",
                                    "question": "Name the four CRUD operations.",
                                    "correct_answer": "create, read, update, delete",
                                    "answer_parts": ["create", "read", "update", "delete"],
                                },
                            ],
                        },
                    ],
                },
                {
                    "id": "a1-everyday-work",
                    "title": "Everyday Work Life",
                    "skills": ["speaking", "listening"],
                    "lessons": [
                        {
                            "id": "a1-ew-standup",
                            "title": "Daily Stand-up",
                            "exercises": [
                                {
                                    "id": "ex-blocker",
                                    "question": "What do you call something that stops you from finishing a task?",
                                    "correct_answer": "blocker",
                                },
                            ],
                        },
                    ],
                },
            ],
        },
        {
            "id": "level-a2",
            "code": "A2",
            "name": "Elementary",
            "description": "Talking about projects and responsibilities",
            "estimated_hours": 25,
            "prerequisites": ["A1"],
            "modules": [
                {
                    "id": "a2-debugging",
                    "title": "Problem Solving & Debugging",
                    "skills": ["writing"],
                    "lessons": [
                        {
                            "id": "a2-db-bug-reports",
                            "title": "Writing a Bug Report",
                            "exercises": [
                                {
                                    "id": "ex-repro-steps",
                                    "question": "Which section of a bug report lists how to trigger the bug?",
                                    "correct_answer": "steps to reproduce",
                                },
                            ],
                        },
                    ],
                },
            ],
        },
    ]
}


def load_curriculum(path: Optional[Path]) -> CurriculumSeed:
    if path is None:
        return CurriculumSeed.model_validate(SAMPLE_CURRICULUM)
    with path.open(encoding="utf-8") as handle:
        return CurriculumSeed.model_validate(json.load(handle))


def _upsert(session: Session, model_cls, row_id: str, **values):  # type: ignore[no-untyped-def]
    model = session.get(model_cls, row_id)
    if model is None:
        model = model_cls(id=row_id)
        session.add(model)
    for key, value in values.items():
        setattr(model, key, value)
    return model


def seed_curriculum(session: Session, curriculum: CurriculumSeed) -> int:
    """Write every level, module, lesson and exercise. Returns the number of exercises."""
    exercises = 0
    for level_order, level in enumerate(curriculum.levels, start=1):
        _upsert(
            session,
            LevelModel,
            level.id,
            code=level.code,
            name=level.name,
            description=level.description,
            order=level_order,
            estimated_hours=level.estimated_hours,
            prerequisites=list(level.prerequisites),
            is_active=True,
        )
        for module_order, module in enumerate(level.modules, start=1):
            _upsert(
                session,
                ModuleModel,
                module.id,
                level_id=level.id,
                title=module.title,
                order=module_order,
                skills=list(module.skills),
                is_active=True,
            )
            for lesson_order, lesson in enumerate(module.lessons, start=1):
                _upsert(
                    session,
                    LessonModel,
                    lesson.id,
                    module_id=module.id,
                    title=lesson.title,
                    order=lesson_order,
                    duration_minutes=lesson.duration_minutes,
                    is_published=True,
                    is_active=True,
                )
                for exercise_order, exercise in enumerate(lesson.exercises, start=1):
                    _upsert(
                        session,
                        ExerciseModel,
                        exercise.id,
                        lesson_id=lesson.id,
                        question=exercise.question,
                        correct_answer=exercise.correct_answer,
                        answer_parts=list(exercise.answer_parts),
                        hints=list(exercise.hints),
                        xp_reward=exercise.xp_reward,
                        order=exercise_order,
                    )
                    exercises += 1
        session.flush()
    logger.info("Seeded %d level(s) and %d exercise(s)", len(curriculum.levels), exercises)
    return exercises


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed TechEnglish curriculum content and achievements.")
    parser.add_argument("--curriculum", type=Path, default=None, help="JSON file shaped like the built-in sample.")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first (local use).")
    parser.add_argument("--admin-email", default=None, help="Create an ADMIN user with this email if missing.")
    parser.add_argument("--skip-achievements", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    args = parse_args(argv)
    try:
        curriculum = load_curriculum(args.curriculum)
    except (OSError, ValidationError, json.JSONDecodeError) as exc:
        logger.error("Could not load curriculum: %s", exc)
        return 1

    if args.create_tables:
        Base.metadata.create_all(get_engine())

    with session_scope() as session:
        seed_curriculum(session, curriculum)
        if args.admin_email and users.find_by_email(session, args.admin_email) is None:
            admin = users.create(session, email=args.admin_email, name="Administrator", role=Role.ADMIN)
            logger.info("Created admin user %s (%s)", admin.id, admin.email)

    if not args.skip_achievements:
        achievement_unlocker.install_catalog()
    return 0


if __name__ == "__main__":
    sys.exit(main())
