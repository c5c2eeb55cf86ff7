"""Deterministic daily lesson selection."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional, Sequence

from .errors import NoContentAvailable
from .lesson_catalog import ContentStore, LessonSummary, find_lesson
from .session_store import SessionStore
from .user_profile import UserRecord

logger = logging.getLogger(__name__)


def day_of_year(today: date) -> int:
    """1-based ordinal within the year: 1 January is 1, 31 December is 365 or 366."""
    return today.timetuple().tm_yday


def candidate_lessons(lessons: Sequence[LessonSummary], selected_topics: Sequence[str]) -> List[LessonSummary]:
    active = [lesson for lesson in lessons if lesson.is_active]
    if not selected_topics:
        return active
    topics = set(selected_topics)
    matching = [lesson for lesson in active if lesson.topic_id in topics]
    return matching or active


def choose_lesson(
    lessons: Sequence[LessonSummary],
    selected_topics: Sequence[str],
    today: date,
) -> LessonSummary:
    candidates = candidate_lessons(lessons, selected_topics)
    if not candidates:
        raise NoContentAvailable("The lesson catalog has no active lessons.")
    return candidates[day_of_year(today) % len(candidates)]


class DailySelector:
    """Picks one lesson per calendar day and remembers it on the user record."""

    def __init__(
        self,
        content: ContentStore,
        session: SessionStore,
        *,
        today: Callable[[], date],
    ) -> None:
        self._content = content
        self._session = session
        self._today = today

    async def select_for_today(
        self,
        user: Optional[UserRecord] = None,
        *,
        today: Optional[date] = None,
    ) -> LessonSummary:
        user = user or self._session.current()
        day = today or self._today()
        lessons = self._content.list_lessons()

        if user is not None and user.cached_daily_lesson_date == day and user.cached_daily_lesson_id:
            cached = find_lesson(lessons, user.cached_daily_lesson_id)
            if cached is not None:
                return cached
            logger.info(
                "Cached daily lesson %s is no longer in the catalog; selecting again",
                user.cached_daily_lesson_id,
            )

        lesson = choose_lesson(lessons, user.selected_topics if user else [], day)
        if user is not None:
            await self._remember(user, lesson, day)
        return lesson

    async def _remember(self, user: UserRecord, lesson: LessonSummary, day: date) -> None:
        bound = self._session.current()
        if bound is None or bound.id != user.id:
            return
        if bound.cached_daily_lesson_id == lesson.id and bound.cached_daily_lesson_date == day:
            return
        await self._session.update(
            {"cached_daily_lesson_id": lesson.id, "cached_daily_lesson_date": day}
        )


__all__ = ["DailySelector", "candidate_lessons", "choose_lesson", "day_of_year"]
