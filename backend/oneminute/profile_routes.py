"""Progress display endpoint for the signed-in user."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from .errors import NoActiveSession, as_http_exception
from .progression import (
    XpProgress,
    level_progress_text,
    streak_emoji,
    xp_progress_within_level,
    xp_remaining_to_next_level,
)
from .services import AppServices, get_services

router = APIRouter(prefix="/api/progress", tags=["progress"])


class ProgressPayload(BaseModel):
    user_id: str
    xp: int
    level: int
    level_progress: XpProgress
    level_progress_text: str
    xp_to_next_level: int
    current_streak: int
    longest_streak: int
    streak_emoji: str
    total_lessons_completed: int
    last_completion_date: Optional[date] = None


@router.get("", response_model=ProgressPayload, status_code=status.HTTP_200_OK)
def get_progress(services: AppServices = Depends(get_services)) -> ProgressPayload:
    user = services.session.current()
    if user is None:
        raise as_http_exception(NoActiveSession("Sign in to see progress."))
    return ProgressPayload(
        user_id=user.id,
        xp=user.xp,
        level=user.level,
        level_progress=xp_progress_within_level(user.xp),
        level_progress_text=level_progress_text(user.xp),
        xp_to_next_level=xp_remaining_to_next_level(user.xp),
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
        streak_emoji=streak_emoji(user.current_streak),
        total_lessons_completed=user.total_lessons_completed,
        last_completion_date=user.last_completion_date,
    )


__all__ = ["router"]
