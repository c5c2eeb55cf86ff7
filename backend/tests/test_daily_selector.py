from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from oneminute.daily_selector import DailySelector, candidate_lessons, choose_lesson, day_of_year
from oneminute.errors import NoContentAvailable
from oneminute.identity import Identity
from oneminute.lesson_catalog import BundledContentStore, LessonSummary
from oneminute.session_store import SessionStore
from oneminute.user_profile import JsonProfileStore, UserRecord


def _lesson(lesson_id: str, topic_id: str = "topic-tech", *, active: bool = True) -> LessonSummary:
    return LessonSummary(
        id=lesson_id,
        topic_id=topic_id,
        category="Technology",
        xp_reward=10,
        title=lesson_id,
        is_active=active,
    )


class _StaticContent:
    def __init__(self, lessons: list[LessonSummary]) -> None:
        self.lessons = lessons

    def list_lessons(self) -> list[LessonSummary]:
        return list(self.lessons)


async def _bound_session(tmp_path: Path, **fields) -> SessionStore:
    profiles = JsonProfileStore(tmp_path / "profiles.json")
    profiles.create(UserRecord(id="user-1", **fields))
    session = SessionStore(profiles)
    await session.on_auth_event(Identity("user-1"))
    return session


def test_day_of_year_is_one_based() -> None:
    assert day_of_year(date(2024, 1, 1)) == 1
    assert day_of_year(date(2023, 12, 31)) == 365
    assert day_of_year(date(2024, 12, 31)) == 366


def test_choose_lesson_pinned_values() -> None:
    lessons = [_lesson("a"), _lesson("b"), _lesson("c")]
    assert choose_lesson(lessons, [], date(2024, 1, 1)).id == "b"
    assert choose_lesson(lessons, [], date(2024, 1, 3)).id == "a"
    assert choose_lesson(lessons, [], date(2023, 12, 31)).id == "c"
    assert choose_lesson(lessons, [], date(2024, 12, 31)).id == "a"


def test_choose_lesson_is_deterministic() -> None:
    lessons = BundledContentStore().list_lessons()
    day = date(2024, 5, 17)
    picks = {choose_lesson(lessons, ["topic-tech"], day).id for _ in range(5)}
    assert len(picks) == 1


def test_candidate_lessons_filters_by_topic_and_falls_back() -> None:
    lessons = [
        _lesson("tech-1", "topic-tech"),
        _lesson("biz-1", "topic-business"),
        _lesson("tech-2", "topic-tech", active=False),
    ]
    assert [lesson.id for lesson in candidate_lessons(lessons, ["topic-tech"])] == ["tech-1"]
    assert [lesson.id for lesson in candidate_lessons(lessons, ["topic-unknown"])] == ["tech-1", "biz-1"]
    assert [lesson.id for lesson in candidate_lessons(lessons, [])] == ["tech-1", "biz-1"]


def test_choose_lesson_with_empty_catalog_raises() -> None:
    with pytest.raises(NoContentAvailable):
        choose_lesson([], ["topic-tech"], date(2024, 1, 1))
    with pytest.raises(NoContentAvailable):
        choose_lesson([_lesson("a", active=False)], [], date(2024, 1, 1))


async def test_select_for_today_remembers_choice(tmp_path: Path) -> None:
    session = await _bound_session(tmp_path, selected_topics=["topic-tech"])
    content = _StaticContent([_lesson("tech-1"), _lesson("tech-2"), _lesson("biz-1", "topic-business")])
    day = date(2024, 1, 1)
    selector = DailySelector(content, session, today=lambda: day)

    lesson = await selector.select_for_today()

    assert lesson.id == "tech-2"
    user = session.current()
    assert user is not None
    assert user.cached_daily_lesson_id == "tech-2"
    assert user.cached_daily_lesson_date == day


async def test_select_for_today_reuses_cache_within_the_day(tmp_path: Path) -> None:
    session = await _bound_session(tmp_path, selected_topics=["topic-tech"])
    content = _StaticContent([_lesson("tech-1"), _lesson("tech-2"), _lesson("biz-1", "topic-business")])
    day = date(2024, 1, 1)
    selector = DailySelector(content, session, today=lambda: day)

    first = await selector.select_for_today()
    await session.update({"selected_topics": ["topic-business"]})
    second = await selector.select_for_today()

    assert second.id == first.id

    next_day = await selector.select_for_today(today=date(2024, 1, 2))
    assert next_day.id == "biz-1"
    user = session.current()
    assert user is not None
    assert user.cached_daily_lesson_date == date(2024, 1, 2)


async def test_select_for_today_reselects_when_cached_lesson_disappears(tmp_path: Path) -> None:
    day = date(2024, 1, 1)
    session = await _bound_session(
        tmp_path,
        cached_daily_lesson_id="retired",
        cached_daily_lesson_date=day,
    )
    content = _StaticContent([_lesson("a"), _lesson("b")])
    selector = DailySelector(content, session, today=lambda: day)

    lesson = await selector.select_for_today()

    assert lesson.id == "b"
    user = session.current()
    assert user is not None
    assert user.cached_daily_lesson_id == "b"


async def test_select_for_today_without_session_does_not_persist(tmp_path: Path) -> None:
    session = SessionStore(JsonProfileStore(tmp_path / "profiles.json"))
    content = _StaticContent([_lesson("a"), _lesson("b"), _lesson("c")])
    selector = DailySelector(content, session, today=lambda: date(2024, 1, 3))

    lesson = await selector.select_for_today()

    assert lesson.id == "a"
    assert session.current() is None
