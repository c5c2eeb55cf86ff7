"""Database-backed topic catalog repository."""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import TopicModel
from ..topic_catalog import Topic

_TOPIC_FIELDS = (
    "name",
    "description",
    "category",
    "icon",
    "color",
    "lessons_count",
    "is_active",
    "sort_order",
    "is_featured",
)


class TopicRepository:
    def list_topics(self, session: Session) -> List[Topic]:
        stmt = select(TopicModel).order_by(TopicModel.sort_order.asc(), TopicModel.name.asc())
        return [
            Topic.model_validate({"id": model.id, **{key: getattr(model, key) for key in _TOPIC_FIELDS}})
            for model in session.execute(stmt).scalars().all()
        ]

    def save_topics(self, session: Session, topics: Iterable[Topic]) -> int:
        count = 0
        for topic in topics:
            model = session.get(TopicModel, topic.id) or TopicModel(id=topic.id)
            for key in _TOPIC_FIELDS:
                setattr(model, key, getattr(topic, key))
            session.add(model)
            count += 1
        session.flush()
        return count


topics = TopicRepository()

__all__ = ["TopicRepository", "topics"]
