"""Lesson completion workflow: credit XP and streaks exactly once per lesson."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import date, datetime
from typing import Callable, Optional

from pydantic import BaseModel

from .errors import InvalidInput, NoActiveSession, PersistenceFailed, ProgressError, UnknownLesson
from .lesson_catalog import ContentStore, find_lesson
from .lesson_progress import CompletionRecord, ProgressStore
from .progression import StreakTransition, apply_completion, check_level_up, streak_transition
from .session_store import SessionStore
from .telemetry import emit_event
from .user_profile import UserRecord

logger = logging.getLogger(__name__)


class CompletionOutcome(BaseModel):
    user: UserRecord
    xp_earned: int = 0
    leveled_up: bool = False
    already_completed: bool = False


class CompletionWorkflow:
    """Marks lessons complete for the signed-in user.

    Calls for the same user are serialized on a per-user lock. Each credit
    runs in three writes:

    1. the completion record is stored as pending (``in_progress``);
    2. the profile is credited and remembers the lesson in
       ``last_credited_lesson_id``;
    3. the record is promoted to ``completed``.

    Only a ``completed`` record short-circuits a later call. If step 2 fails
    the record is put back as it was; should that fail too, the record is
    still merely pending and a retry credits the lesson. If step 3 fails the
    profile marker lets a retry finish the record without crediting twice.
    """

    def __init__(
        self,
        session: SessionStore,
        progress: ProgressStore,
        content: ContentStore,
        *,
        today: Callable[[], date],
        now: Callable[[], datetime],
    ) -> None:
        self._session = session
        self._progress = progress
        self._content = content
        self._today = today
        self._now = now
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def complete(
        self,
        user_id: str,
        lesson_id: str,
        xp_reward: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> UserRecord:
        outcome = await self.credit(user_id, lesson_id, xp_reward, today=today)
        return outcome.user

    async def credit(
        self,
        user_id: str,
        lesson_id: str,
        xp_reward: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> CompletionOutcome:
        """Like ``complete`` but also reports what this call credited."""
        lock = self._lock_for(user_id)
        async with lock:
            return await self._credit(user_id, lesson_id, xp_reward, today or self._today())

    async def _credit(
        self,
        user_id: str,
        lesson_id: str,
        xp_reward: Optional[int],
        today: date,
    ) -> CompletionOutcome:
        user = self._session.current()
        if user is None or user.id != user_id:
            raise NoActiveSession(f"User '{user_id}' is not signed in.")
        lesson = find_lesson(self._content.list_lessons(), lesson_id)
        if lesson is None:
            raise UnknownLesson(lesson_id)
        reward = lesson.xp_reward if xp_reward is None else xp_reward
        if isinstance(reward, bool) or not isinstance(reward, int) or reward < 0:
            raise InvalidInput(f"XP reward must be a non-negative integer, got {reward!r}.")

        try:
            previous = self._progress.get(user_id, lesson_id)
        except Exception as exc:  # noqa: BLE001
            raise PersistenceFailed(f"Could not read lesson progress: {exc}") from exc
        if previous is not None and previous.is_completed:
            logger.info("Lesson %s already completed by %s; nothing to credit", lesson_id, user_id)
            return CompletionOutcome(user=user, already_completed=True)
        if previous is not None and previous.is_pending and user.last_credited_lesson_id == lesson_id:
            logger.info("Finishing lesson %s for %s; the profile was already credited", lesson_id, user_id)
            self._store(previous.model_copy(update={"status": "completed"}))
            leveled_up = check_level_up(max(user.xp - previous.xp_earned, 0), user.xp)
            self._announce(user, lesson_id, previous.xp_earned, leveled_up, transition=None)
            return CompletionOutcome(user=user, xp_earned=previous.xp_earned, leveled_up=leveled_up)

        transition = streak_transition(user.last_completion_date, today)
        credited = apply_completion(
            user,
            reward,
            transition is StreakTransition.CONSECUTIVE,
            same_day=transition is StreakTransition.SAME_DAY,
        )
        last_date = max(today, user.last_completion_date) if user.last_completion_date else today

        pending = self._store(
            CompletionRecord(
                user_id=user_id,
                lesson_id=lesson_id,
                status="in_progress",
                xp_earned=reward,
                completed_at=self._now(),
            )
        )
        try:
            stored = await self._session.update(
                {
                    "xp": credited.xp,
                    "current_streak": credited.current_streak,
                    "longest_streak": credited.longest_streak,
                    "total_lessons_completed": credited.total_lessons_completed,
                    "last_completion_date": last_date,
                    "cached_daily_lesson_id": lesson_id,
                    "cached_daily_lesson_date": today,
                    "last_credited_lesson_id": lesson_id,
                }
            )
        except ProgressError:
            self._undo_progress(user_id, lesson_id, previous)
            raise

        self._store(pending.model_copy(update={"status": "completed"}))
        leveled_up = check_level_up(user.xp, stored.xp)
        self._announce(stored, lesson_id, reward, leveled_up, transition=transition)
        return CompletionOutcome(user=stored, xp_earned=reward, leveled_up=leveled_up)

    def _store(self, record: CompletionRecord) -> CompletionRecord:
        try:
            return self._progress.upsert(record)
        except Exception as exc:  # noqa: BLE001
            raise PersistenceFailed(f"Could not record lesson completion: {exc}") from exc

    def _undo_progress(self, user_id: str, lesson_id: str, previous: Optional[CompletionRecord]) -> None:
        # A failed restore leaves a pending record behind, which a retry credits.
        try:
            self._progress.restore(user_id, lesson_id, previous)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to restore lesson progress for %s/%s after a profile write failure",
                user_id,
                lesson_id,
            )

    def _announce(
        self,
        user: UserRecord,
        lesson_id: str,
        xp_earned: int,
        leveled_up: bool,
        *,
        transition: Optional[StreakTransition],
    ) -> None:
        emit_event(
            "lesson_completed",
            user_id=user.id,
            lesson_id=lesson_id,
            xp_earned=xp_earned,
            streak=user.current_streak,
            transition=transition.value if transition else "resumed",
        )
        if leveled_up:
            emit_event("level_up", user_id=user.id, level=user.level)


__all__ = ["CompletionOutcome", "CompletionWorkflow"]
