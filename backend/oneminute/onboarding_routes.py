"""Onboarding endpoints: topic selection and completing the flow."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from .errors import ProgressError, as_http_exception
from .onboarding import complete_onboarding, save_topics
from .services import AppServices, get_services
from .user_profile import UserRecord

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])
logger = logging.getLogger(__name__)


class TopicSelectionRequest(BaseModel):
    topics: List[str] = Field(default_factory=list)


class OnboardingCompleteRequest(BaseModel):
    selected_topics: Optional[List[str]] = None
    notifications_enabled: bool = True
    notification_time: Optional[str] = None


@router.post("/topics", response_model=UserRecord, status_code=status.HTTP_200_OK)
async def choose_topics(
    request: TopicSelectionRequest,
    services: AppServices = Depends(get_services),
) -> UserRecord:
    try:
        return await save_topics(services.session, request.topics, catalog=services.topics)
    except ProgressError as exc:
        raise as_http_exception(exc) from exc


@router.post("/complete", response_model=UserRecord, status_code=status.HTTP_200_OK)
async def finish_onboarding(
    request: OnboardingCompleteRequest,
    services: AppServices = Depends(get_services),
) -> UserRecord:
    try:
        return await complete_onboarding(
            services.session,
            services.capabilities,
            catalog=services.topics,
            selected_topics=request.selected_topics,
            notifications_enabled=request.notifications_enabled,
            notification_time=request.notification_time,
        )
    except ProgressError as exc:
        raise as_http_exception(exc) from exc


__all__ = ["router"]
