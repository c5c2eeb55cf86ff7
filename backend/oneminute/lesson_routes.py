"""Lesson endpoints: catalog, daily pick, completion, and history."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from .clock import parse_calendar_date
from .errors import NoActiveSession, ProgressError, UnknownLesson, as_http_exception
from .lesson_catalog import LessonSummary, find_lesson
from .lesson_progress import CompletionRecord
from .progression import completion_message
from .services import AppServices, get_services
from .user_profile import UserRecord

router = APIRouter(prefix="/api/lessons", tags=["lessons"])
logger = logging.getLogger(__name__)


class CompleteLessonRequest(BaseModel):
    xp_reward: Optional[int] = None
    on: Optional[str] = Field(default=None, description="Calendar date override (YYYY-MM-DD).")


class CompleteLessonResponse(BaseModel):
    user: UserRecord
    leveled_up: bool
    message: str


def _requested_day(raw: Optional[str]) -> Optional[date]:
    return parse_calendar_date(raw) if raw is not None else None


@router.get("", response_model=List[LessonSummary], status_code=status.HTTP_200_OK)
def list_lessons(services: AppServices = Depends(get_services)) -> List[LessonSummary]:
    return [lesson for lesson in services.content.list_lessons() if lesson.is_active]


@router.get("/daily", response_model=LessonSummary, status_code=status.HTTP_200_OK)
async def daily_lesson(
    on: Optional[str] = Query(default=None, description="Calendar date override (YYYY-MM-DD)."),
    services: AppServices = Depends(get_services),
) -> LessonSummary:
    try:
        return await services.selector.select_for_today(today=_requested_day(on))
    except ProgressError as exc:
        raise as_http_exception(exc) from exc


@router.get("/completed", response_model=List[CompletionRecord], status_code=status.HTTP_200_OK)
def completed_lessons(services: AppServices = Depends(get_services)) -> List[CompletionRecord]:
    user = services.session.current()
    if user is None:
        raise as_http_exception(NoActiveSession("Sign in to see completed lessons."))
    return services.progress.list_completed(user.id)


@router.get("/{lesson_id}", response_model=LessonSummary, status_code=status.HTTP_200_OK)
def get_lesson(lesson_id: str, services: AppServices = Depends(get_services)) -> LessonSummary:
    lesson = find_lesson(services.content.list_lessons(), lesson_id)
    if lesson is None:
        raise as_http_exception(UnknownLesson(lesson_id))
    return lesson


@router.post("/{lesson_id}/complete", response_model=CompleteLessonResponse, status_code=status.HTTP_200_OK)
async def complete_lesson(
    lesson_id: str,
    request: Optional[CompleteLessonRequest] = None,
    services: AppServices = Depends(get_services),
) -> CompleteLessonResponse:
    request = request or CompleteLessonRequest()
    user = services.session.current()
    try:
        if user is None:
            raise NoActiveSession("Sign in to complete lessons.")
        outcome = await services.completion.credit(
            user.id,
            lesson_id,
            request.xp_reward,
            today=_requested_day(request.on),
        )
    except ProgressError as exc:
        raise as_http_exception(exc) from exc

    updated = outcome.user
    return CompleteLessonResponse(
        user=updated,
        leveled_up=outcome.leveled_up,
        message=completion_message(outcome.xp_earned, updated.current_streak, outcome.leveled_up, updated.level),
    )


__all__ = ["router"]
