"""Topic endpoints: browse, filter, and search the onboarding subjects."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from .errors import UnknownTopic, as_http_exception
from .services import AppServices, get_services
from .topic_catalog import Topic, active_topics, find_topic, search_topics, topics_in_category

router = APIRouter(prefix="/api/topics", tags=["topics"])


@router.get("", response_model=List[Topic], status_code=status.HTTP_200_OK)
def list_topics(
    category: Optional[str] = Query(default=None, description="Only topics in this category."),
    services: AppServices = Depends(get_services),
) -> List[Topic]:
    catalog = services.topics.list_topics()
    if category:
        return topics_in_category(catalog, category)
    return active_topics(catalog)


@router.get("/search", response_model=List[Topic], status_code=status.HTTP_200_OK)
def find_topics(
    q: str = Query(default="", description="Matched against topic names and descriptions."),
    services: AppServices = Depends(get_services),
) -> List[Topic]:
    return search_topics(services.topics.list_topics(), q)


@router.get("/{topic_id}", response_model=Topic, status_code=status.HTTP_200_OK)
def get_topic(topic_id: str, services: AppServices = Depends(get_services)) -> Topic:
    topic = find_topic(services.topics.list_topics(), topic_id)
    if topic is None or not topic.is_active:
        raise as_http_exception(UnknownTopic(topic_id))
    return topic


__all__ = ["router"]
