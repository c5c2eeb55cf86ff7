"""XP, level, and streak arithmetic.

Everything in this module is pure: functions take values or records and hand
back new values or records. Persisting the results is the caller's job.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

from .errors import InvalidInput

if TYPE_CHECKING:
    from .user_profile import UserRecord

XP_PER_LEVEL = 100


class XpProgress(BaseModel):
    """XP earned inside the current level, for progress bars."""

    current: int
    needed: int = XP_PER_LEVEL
    percent: int


class StreakTransition(str, Enum):
    FIRST = "first"
    SAME_DAY = "same_day"
    CONSECUTIVE = "consecutive"
    GAP = "gap"


def _require_xp(xp: int) -> int:
    if isinstance(xp, bool) or not isinstance(xp, int):
        raise InvalidInput(f"XP must be an integer, got {xp!r}.")
    if xp < 0:
        raise InvalidInput(f"XP cannot be negative, got {xp}.")
    return xp


def level_for_xp(xp: int) -> int:
    """Level 1 at 0 XP, level 2 at 100 XP, and so on."""
    return _require_xp(xp) // XP_PER_LEVEL + 1


def total_xp_for_level(level: int) -> int:
    if level < 1:
        raise InvalidInput(f"Levels start at 1, got {level}.")
    return (level - 1) * XP_PER_LEVEL


def xp_remaining_to_next_level(xp: int) -> int:
    return level_for_xp(xp) * XP_PER_LEVEL - xp


def xp_progress_within_level(xp: int) -> XpProgress:
    current = xp - total_xp_for_level(level_for_xp(xp))
    percent = min(100, round(current / XP_PER_LEVEL * 100))
    return XpProgress(current=current, needed=XP_PER_LEVEL, percent=percent)


def check_level_up(old_xp: int, new_xp: int) -> bool:
    return level_for_xp(new_xp) > level_for_xp(old_xp)


def new_level(old_xp: int, new_xp: int) -> int:
    """Return the level reached between the two XP totals, or 0 if none."""
    if check_level_up(old_xp, new_xp):
        return level_for_xp(new_xp)
    return 0


def level_progress_text(xp: int) -> str:
    progress = xp_progress_within_level(xp)
    return f"{progress.current}/{progress.needed} XP to Level {level_for_xp(xp) + 1}"


def streak_emoji(streak: int) -> str:
    if streak >= 30:
        return "\U0001F525" * 3
    if streak >= 14:
        return "\U0001F525" * 2
    if streak >= 1:
        return "\U0001F525"
    return ""


def completion_message(
    xp_earned: int,
    current_streak: int,
    leveled_up: bool,
    level: Optional[int] = None,
) -> str:
    if leveled_up and level:
        return f"\U0001F389 Level up! You're now Level {level}!"
    streak_text = ""
    if current_streak > 0:
        streak_text = f" | Streak: {current_streak} {streak_emoji(current_streak)}"
    return f"+{xp_earned} XP{streak_text}"


def streak_transition(last_completion_date: Optional[date], today: date) -> StreakTransition:
    """Classify ``today`` relative to the previous completion date.

    Only a completion exactly one calendar day after the previous one is
    consecutive. A date earlier than the previous completion (clock moved
    backwards) is treated as the same day.
    """
    if last_completion_date is None:
        return StreakTransition.FIRST
    if today <= last_completion_date:
        return StreakTransition.SAME_DAY
    if today - last_completion_date == timedelta(days=1):
        return StreakTransition.CONSECUTIVE
    return StreakTransition.GAP


def apply_completion(
    user: "UserRecord",
    xp_earned: int,
    is_consecutive_day: bool,
    *,
    same_day: bool = False,
) -> "UserRecord":
    """Return a copy of ``user`` credited with one completed lesson.

    ``same_day`` keeps the current streak as it is (a second lesson on a day
    that already counted), raising it to 1 when no streak was running.
    """
    _require_xp(xp_earned)
    xp = user.xp + xp_earned
    if same_day:
        current_streak = max(user.current_streak, 1)
    elif is_consecutive_day:
        current_streak = user.current_streak + 1
    else:
        current_streak = 1
    return user.model_copy(
        update={
            "xp": xp,
            "level": level_for_xp(xp),
            "current_streak": current_streak,
            "longest_streak": max(user.longest_streak, current_streak),
            "total_lessons_completed": user.total_lessons_completed + 1,
        },
        deep=True,
    )


__all__ = [
    "StreakTransition",
    "XP_PER_LEVEL",
    "XpProgress",
    "apply_completion",
    "check_level_up",
    "completion_message",
    "level_for_xp",
    "level_progress_text",
    "new_level",
    "streak_emoji",
    "streak_transition",
    "total_xp_for_level",
    "xp_progress_within_level",
    "xp_remaining_to_next_level",
]
