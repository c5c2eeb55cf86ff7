from __future__ import annotations

import asyncio
import gc
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type

import pytest

from oneminute.completion import CompletionWorkflow
from oneminute.errors import InvalidInput, NoActiveSession, PersistenceFailed, UnknownLesson
from oneminute.identity import Identity
from oneminute.lesson_catalog import LessonSummary
from oneminute.lesson_progress import CompletionRecord, JsonProgressStore
from oneminute.session_store import SessionStore
from oneminute.telemetry import TelemetryEvent, clear_listeners, register_listener
from oneminute.user_profile import JsonProfileStore, UserRecord

FIXED_NOW = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


class _StaticContent:
    def __init__(self, lessons: list[LessonSummary]) -> None:
        self.lessons = lessons

    def list_lessons(self) -> list[LessonSummary]:
        return list(self.lessons)


class _FlakyProfiles(JsonProfileStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.fail_updates = False

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        if self.fail_updates:
            raise RuntimeError("db unavailable")
        return super().update(user_id, fields)


class _FlakyProgress(JsonProgressStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.fail_restores = False
        self.fail_completed_writes = False

    def upsert(self, record: CompletionRecord) -> CompletionRecord:
        if self.fail_completed_writes and record.is_completed:
            raise RuntimeError("progress store unavailable")
        return super().upsert(record)

    def restore(self, user_id: str, lesson_id: str, previous: Optional[CompletionRecord]) -> None:
        if self.fail_restores:
            raise RuntimeError("restore unavailable")
        super().restore(user_id, lesson_id, previous)


class _YieldingSessionStore(SessionStore):
    """Gives up the event loop before every profile write, like a real I/O-bound store."""

    async def update(self, partial: Mapping[str, Any]) -> UserRecord:
        await asyncio.sleep(0)
        return await super().update(partial)


def _catalog() -> _StaticContent:
    return _StaticContent(
        [
            LessonSummary(id=f"lesson-{index}", topic_id="topic-tech", category="Technology", xp_reward=10)
            for index in range(1, 6)
        ]
    )


class _Harness:
    def __init__(
        self,
        tmp_path: Path,
        day: date = date(2024, 3, 1),
        session_cls: Type[SessionStore] = SessionStore,
    ) -> None:
        self.day = day
        self.profiles = _FlakyProfiles(tmp_path / "profiles.json")
        self.progress = _FlakyProgress(tmp_path / "progress.json")
        self.session = session_cls(self.profiles)
        self.workflow = CompletionWorkflow(
            self.session,
            self.progress,
            _catalog(),
            today=lambda: self.day,
            now=lambda: FIXED_NOW,
        )

    async def sign_in(self, **fields) -> None:
        if fields:
            self.profiles.create(UserRecord(id="user-1", **fields))
        await self.session.on_auth_event(Identity("user-1"))


@pytest.fixture
def events():
    captured: list[TelemetryEvent] = []
    register_listener(captured.append)
    yield captured
    clear_listeners()


async def test_first_completion_credits_user(tmp_path: Path, events) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    user = await harness.workflow.complete("user-1", "lesson-1")

    assert user.xp == 10
    assert user.level == 1
    assert user.current_streak == 1
    assert user.longest_streak == 1
    assert user.total_lessons_completed == 1
    assert user.last_completion_date == date(2024, 3, 1)
    assert user.cached_daily_lesson_id == "lesson-1"
    assert user.cached_daily_lesson_date == date(2024, 3, 1)

    record = harness.progress.get("user-1", "lesson-1")
    assert record is not None
    assert record.is_completed
    assert record.xp_earned == 10
    assert record.completed_at == FIXED_NOW

    stored = harness.profiles.get("user-1")
    assert stored is not None and stored.xp == 10
    completed = [event for event in events if event.name == "lesson_completed"]
    assert completed and completed[0].payload["lesson_id"] == "lesson-1"


async def test_completion_is_idempotent(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    first = await harness.workflow.complete("user-1", "lesson-1")
    harness.day = date(2024, 3, 2)
    second = await harness.workflow.complete("user-1", "lesson-1")

    assert second.xp == first.xp == 10
    assert second.total_lessons_completed == 1
    assert second.current_streak == 1
    assert len(harness.progress.list_completed("user-1")) == 1


async def test_streak_scenario_across_days(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()
    schedule = [
        ("lesson-1", date(2024, 3, 1)),
        ("lesson-2", date(2024, 3, 2)),
        ("lesson-3", date(2024, 3, 3)),
        ("lesson-4", date(2024, 3, 5)),
    ]

    streaks = []
    for lesson_id, day in schedule:
        user = await harness.workflow.complete("user-1", lesson_id, today=day)
        streaks.append((user.current_streak, user.longest_streak))

    assert streaks == [(1, 1), (2, 2), (3, 3), (1, 3)]
    assert user.xp == 40
    assert user.total_lessons_completed == 4
    assert user.last_completion_date == date(2024, 3, 5)


async def test_level_boundary_emits_level_up(tmp_path: Path, events) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in(xp=90)

    user = await harness.workflow.complete("user-1", "lesson-1")

    assert user.xp == 100
    assert user.level == 2
    level_ups = [event for event in events if event.name == "level_up"]
    assert level_ups and level_ups[0].payload["level"] == 2


async def test_same_day_completion_keeps_streak(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in(
        xp=50,
        current_streak=3,
        longest_streak=4,
        total_lessons_completed=5,
        last_completion_date=date(2024, 3, 1),
    )

    user = await harness.workflow.complete("user-1", "lesson-2")

    assert user.xp == 60
    assert user.current_streak == 3
    assert user.longest_streak == 4
    assert user.total_lessons_completed == 6


async def test_clock_moving_backwards_keeps_latest_date(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, day=date(2024, 2, 27))
    await harness.sign_in(current_streak=2, longest_streak=2, last_completion_date=date(2024, 3, 1))

    user = await harness.workflow.complete("user-1", "lesson-1")

    assert user.current_streak == 2
    assert user.last_completion_date == date(2024, 3, 1)


async def test_explicit_reward_overrides_catalog(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    user = await harness.workflow.complete("user-1", "lesson-1", 25)

    assert user.xp == 25
    record = harness.progress.get("user-1", "lesson-1")
    assert record is not None and record.xp_earned == 25


async def test_rejects_requests_it_cannot_honour(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)

    with pytest.raises(NoActiveSession):
        await harness.workflow.complete("user-1", "lesson-1")

    await harness.sign_in()
    with pytest.raises(NoActiveSession):
        await harness.workflow.complete("someone-else", "lesson-1")
    with pytest.raises(UnknownLesson):
        await harness.workflow.complete("user-1", "lesson-404")
    with pytest.raises(InvalidInput):
        await harness.workflow.complete("user-1", "lesson-1", -5)

    assert harness.progress.get("user-1", "lesson-1") is None
    user = harness.session.current()
    assert user is not None and user.xp == 0


async def test_profile_write_failure_rolls_back_completion(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    harness.profiles.fail_updates = True
    with pytest.raises(PersistenceFailed):
        await harness.workflow.complete("user-1", "lesson-1")

    assert harness.progress.get("user-1", "lesson-1") is None
    user = harness.session.current()
    assert user is not None
    assert user.xp == 0
    assert user.total_lessons_completed == 0

    harness.profiles.fail_updates = False
    retried = await harness.workflow.complete("user-1", "lesson-1")
    assert retried.xp == 10
    assert retried.total_lessons_completed == 1


async def test_concurrent_completions_of_one_lesson_credit_once(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    results = await asyncio.gather(
        harness.workflow.complete("user-1", "lesson-1"),
        harness.workflow.complete("user-1", "lesson-1"),
        harness.workflow.complete("user-1", "lesson-1"),
    )

    assert {user.xp for user in results} == {10}
    user = harness.session.current()
    assert user is not None
    assert user.xp == 10
    assert user.total_lessons_completed == 1


async def test_concurrent_completions_of_different_lessons_all_count(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    await asyncio.gather(
        harness.workflow.complete("user-1", "lesson-1"),
        harness.workflow.complete("user-1", "lesson-2"),
        harness.workflow.complete("user-1", "lesson-3"),
    )

    user = harness.session.current()
    assert user is not None
    assert user.xp == 30
    assert user.total_lessons_completed == 3
    assert user.current_streak == 1
    assert [record.lesson_id for record in harness.progress.list_completed("user-1")] == [
        "lesson-1",
        "lesson-2",
        "lesson-3",
    ]


async def test_failed_restore_still_allows_a_full_retry(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    harness.profiles.fail_updates = True
    harness.progress.fail_restores = True
    with pytest.raises(PersistenceFailed):
        await harness.workflow.complete("user-1", "lesson-1")

    leftover = harness.progress.get("user-1", "lesson-1")
    assert leftover is not None and leftover.is_pending
    assert harness.progress.list_completed("user-1") == []

    harness.profiles.fail_updates = False
    harness.progress.fail_restores = False
    retried = await harness.workflow.complete("user-1", "lesson-1")

    assert retried.xp == 10
    assert retried.total_lessons_completed == 1
    record = harness.progress.get("user-1", "lesson-1")
    assert record is not None and record.is_completed


async def test_lost_record_write_is_finished_without_double_credit(tmp_path: Path, events) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in(xp=95)

    harness.progress.fail_completed_writes = True
    with pytest.raises(PersistenceFailed):
        await harness.workflow.complete("user-1", "lesson-1")

    credited = harness.session.current()
    assert credited is not None
    assert credited.xp == 105
    assert credited.last_credited_lesson_id == "lesson-1"

    harness.progress.fail_completed_writes = False
    outcome = await harness.workflow.credit("user-1", "lesson-1")

    assert outcome.user.xp == 105
    assert outcome.user.total_lessons_completed == 1
    assert outcome.xp_earned == 10
    assert outcome.leveled_up is True
    record = harness.progress.get("user-1", "lesson-1")
    assert record is not None and record.is_completed
    assert [event.name for event in events if event.name in {"lesson_completed", "level_up"}] == [
        "lesson_completed",
        "level_up",
    ]


async def test_credit_reports_what_this_call_earned(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in(xp=90)

    first = await harness.workflow.credit("user-1", "lesson-1")
    repeat = await harness.workflow.credit("user-1", "lesson-1")

    assert (first.xp_earned, first.leveled_up, first.already_completed) == (10, True, False)
    assert (repeat.xp_earned, repeat.leveled_up, repeat.already_completed) == (0, False, True)
    assert repeat.user.xp == 100


async def test_lock_serializes_completions_that_yield(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, session_cls=_YieldingSessionStore)
    await harness.sign_in()

    await asyncio.gather(
        harness.workflow.complete("user-1", "lesson-1"),
        harness.workflow.complete("user-1", "lesson-2"),
    )

    user = harness.session.current()
    assert user is not None
    assert user.xp == 20
    assert user.total_lessons_completed == 2


async def test_lock_credits_a_repeated_lesson_once_when_writes_yield(tmp_path: Path, events) -> None:
    harness = _Harness(tmp_path, session_cls=_YieldingSessionStore)
    await harness.sign_in()

    outcomes = await asyncio.gather(
        harness.workflow.credit("user-1", "lesson-1"),
        harness.workflow.credit("user-1", "lesson-1"),
    )

    assert sorted(outcome.xp_earned for outcome in outcomes) == [0, 10]
    assert [event.name for event in events].count("lesson_completed") == 1
    user = harness.session.current()
    assert user is not None and user.xp == 10


async def test_user_locks_are_released_after_use(tmp_path: Path) -> None:
    harness = _Harness(tmp_path)
    await harness.sign_in()

    await harness.workflow.complete("user-1", "lesson-1")
    gc.collect()

    assert len(harness.workflow._locks) == 0
