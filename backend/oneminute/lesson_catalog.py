"""Lesson catalog models and content store implementations."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from .capabilities import CapabilityProvider
from .config import Settings
from .db.session import session_scope

logger = logging.getLogger(__name__)

BUNDLED_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "lessons.json"

Difficulty = Literal["beginner", "intermediate", "advanced"]


class LessonSummary(BaseModel):
    """Read-only catalog entry for a single lesson."""

    id: str = Field(..., min_length=1)
    topic_id: str
    category: str
    difficulty: Difficulty = "beginner"
    xp_reward: int = Field(..., gt=0)
    title: str = ""
    estimated_minutes: int = Field(default=1, ge=1)
    is_active: bool = True


class ContentStore(Protocol):
    def list_lessons(self) -> List[LessonSummary]:  # pragma: no cover - protocol definition
        ...


def find_lesson(lessons: Sequence[LessonSummary], lesson_id: str) -> Optional[LessonSummary]:
    for lesson in lessons:
        if lesson.id == lesson_id:
            return lesson
    return None


class BundledContentStore:
    """Catalog shipped with the package, used offline and as a fallback."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or BUNDLED_CATALOG_PATH
        self._cache: Optional[List[LessonSummary]] = None

    def list_lessons(self) -> List[LessonSummary]:
        if self._cache is None:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
            self._cache = [LessonSummary.model_validate(entry) for entry in raw]
        return [lesson.model_copy() for lesson in self._cache]


class DatabaseContentStore:
    def list_lessons(self) -> List[LessonSummary]:
        from .repositories.lessons import lessons as repository

        with session_scope(commit=False) as session:
            return repository.list_lessons(session)


class FallbackContentStore:
    """Reads the primary catalog and falls back when it is empty or unreachable."""

    def __init__(self, primary: ContentStore, fallback: ContentStore) -> None:
        self._primary = primary
        self._fallback = fallback

    def list_lessons(self) -> List[LessonSummary]:
        try:
            lessons = self._primary.list_lessons()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Primary lesson catalog unavailable; using bundled lessons: %s", exc)
            return self._fallback.list_lessons()
        if not lessons:
            logger.info("Primary lesson catalog is empty; using bundled lessons")
            return self._fallback.list_lessons()
        return lessons


def build_content_store(settings: Settings, capabilities: CapabilityProvider) -> ContentStore:
    bundled = BundledContentStore()
    if capabilities.remote_content and settings.persistence_mode == "database":
        return FallbackContentStore(DatabaseContentStore(), bundled)
    return bundled


__all__ = [
    "BundledContentStore",
    "ContentStore",
    "DatabaseContentStore",
    "Difficulty",
    "FallbackContentStore",
    "LessonSummary",
    "build_content_store",
    "find_lesson",
]
