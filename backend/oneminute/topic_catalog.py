"""Topic catalog: the subjects a learner can pick during onboarding."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from .capabilities import CapabilityProvider
from .config import Settings
from .db.session import session_scope

logger = logging.getLogger(__name__)

BUNDLED_TOPICS_PATH = Path(__file__).resolve().parent / "data" / "topics.json"


class Topic(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    category: str
    icon: Optional[str] = None
    color: Optional[str] = None
    lessons_count: int = Field(default=0, ge=0)
    is_active: bool = True
    sort_order: int = 0
    is_featured: bool = False


class TopicStore(Protocol):
    def list_topics(self) -> List[Topic]:  # pragma: no cover - protocol definition
        ...


def sort_topics(topics: Sequence[Topic]) -> List[Topic]:
    return sorted(topics, key=lambda topic: (topic.sort_order, topic.name.lower()))


def active_topics(topics: Sequence[Topic]) -> List[Topic]:
    return sort_topics([topic for topic in topics if topic.is_active])


def topics_in_category(topics: Sequence[Topic], category: str) -> List[Topic]:
    wanted = category.strip().lower()
    return [topic for topic in active_topics(topics) if topic.category.lower() == wanted]


def find_topic(topics: Sequence[Topic], topic_id: str) -> Optional[Topic]:
    for topic in topics:
        if topic.id == topic_id:
            return topic
    return None


def search_topics(topics: Sequence[Topic], term: str) -> List[Topic]:
    """Case-insensitive match on name or description; a blank term matches everything."""
    needle = term.strip().lower()
    return [
        topic
        for topic in active_topics(topics)
        if needle in topic.name.lower() or needle in topic.description.lower()
    ]


def unknown_topic_ids(topics: Sequence[Topic], topic_ids: Sequence[str]) -> List[str]:
    known = {topic.id for topic in topics if topic.is_active}
    return [topic_id for topic_id in topic_ids if topic_id not in known]


class BundledTopicStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or BUNDLED_TOPICS_PATH
        self._cache: Optional[List[Topic]] = None

    def list_topics(self) -> List[Topic]:
        if self._cache is None:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
            self._cache = [Topic.model_validate(entry) for entry in raw]
        return [topic.model_copy() for topic in self._cache]


class DatabaseTopicStore:
    def list_topics(self) -> List[Topic]:
        from .repositories.topics import topics as repository

        with session_scope(commit=False) as session:
            return repository.list_topics(session)


class FallbackTopicStore:
    """Reads the primary topic list and falls back when it is empty or unreachable."""

    def __init__(self, primary: TopicStore, fallback: TopicStore) -> None:
        self._primary = primary
        self._fallback = fallback

    def list_topics(self) -> List[Topic]:
        try:
            topics = self._primary.list_topics()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Primary topic catalog unavailable; using bundled topics: %s", exc)
            return self._fallback.list_topics()
        if not topics:
            logger.info("Primary topic catalog is empty; using bundled topics")
            return self._fallback.list_topics()
        return topics


def build_topic_store(settings: Settings, capabilities: CapabilityProvider) -> TopicStore:
    bundled = BundledTopicStore()
    if capabilities.remote_content and settings.persistence_mode == "database":
        return FallbackTopicStore(DatabaseTopicStore(), bundled)
    return bundled


__all__ = [
    "BUNDLED_TOPICS_PATH",
    "BundledTopicStore",
    "DatabaseTopicStore",
    "FallbackTopicStore",
    "Topic",
    "TopicStore",
    "active_topics",
    "build_topic_store",
    "find_topic",
    "search_topics",
    "sort_topics",
    "topics_in_category",
    "unknown_topic_ids",
]
