"""Database-backed lesson catalog repository."""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import LessonModel
from ..lesson_catalog import LessonSummary


class LessonRepository:
    def list_lessons(self, session: Session) -> List[LessonSummary]:
        stmt = select(LessonModel).order_by(LessonModel.sort_order.asc(), LessonModel.id.asc())
        return [
            LessonSummary(
                id=model.id,
                title=model.title,
                topic_id=model.topic_id,
                category=model.category,
                difficulty=model.difficulty,  # type: ignore[arg-type]
                xp_reward=model.xp_reward,
                estimated_minutes=model.estimated_minutes,
                is_active=model.is_active,
            )
            for model in session.execute(stmt).scalars().all()
        ]

    def save_lessons(self, session: Session, lessons: Iterable[LessonSummary]) -> int:
        count = 0
        for index, lesson in enumerate(lessons):
            model = session.get(LessonModel, lesson.id) or LessonModel(id=lesson.id)
            model.title = lesson.title
            model.topic_id = lesson.topic_id
            model.category = lesson.category
            model.difficulty = lesson.difficulty
            model.xp_reward = lesson.xp_reward
            model.estimated_minutes = lesson.estimated_minutes
            model.is_active = lesson.is_active
            model.sort_order = index
            session.add(model)
            count += 1
        session.flush()
        return count


lessons = LessonRepository()

__all__ = ["LessonRepository", "lessons"]
