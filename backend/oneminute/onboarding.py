"""Onboarding actions: topic selection and finishing the flow."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .capabilities import CapabilityProvider
from .errors import InvalidInput, NoActiveSession
from .session_store import SessionStore
from .telemetry import emit_event
from .topic_catalog import TopicStore, unknown_topic_ids
from .user_profile import UserRecord

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_TIME = "09:00"


def _clean_topics(topics: Sequence[str], catalog: TopicStore) -> list[str]:
    if isinstance(topics, str):
        raise InvalidInput("Topics must be a list of topic ids.")
    cleaned = [topic.strip() for topic in topics if isinstance(topic, str) and topic.strip()]
    if len(cleaned) != len(list(topics)):
        raise InvalidInput("Topic ids must be non-empty strings.")
    unknown = unknown_topic_ids(catalog.list_topics(), cleaned)
    if unknown:
        raise InvalidInput(f"Unknown topic ids: {', '.join(unknown)}")
    return cleaned


async def save_topics(session: SessionStore, topics: Sequence[str], *, catalog: TopicStore) -> UserRecord:
    if session.current() is None:
        raise NoActiveSession("Sign in before choosing topics.")
    return await session.update({"selected_topics": _clean_topics(topics, catalog)})


async def complete_onboarding(
    session: SessionStore,
    capabilities: CapabilityProvider,
    *,
    catalog: TopicStore,
    selected_topics: Optional[Sequence[str]] = None,
    notifications_enabled: bool = True,
    notification_time: Optional[str] = None,
) -> UserRecord:
    """Store the onboarding choices and mark onboarding complete.

    Reminders are switched off on platforms without local notifications,
    whatever the caller asked for.
    """
    user = session.current()
    if user is None:
        raise NoActiveSession("Sign in before completing onboarding.")

    fields: dict[str, object] = {"onboarding_complete": True}
    if selected_topics is not None:
        fields["selected_topics"] = _clean_topics(selected_topics, catalog)

    if notifications_enabled and not capabilities.local_notifications:
        logger.info("Platform %s has no local notifications; disabling reminders", capabilities.name)
        notifications_enabled = False
    fields["notifications_enabled"] = notifications_enabled
    if notifications_enabled:
        fields["notification_time"] = notification_time or user.notification_time or DEFAULT_NOTIFICATION_TIME
    elif notification_time is not None:
        fields["notification_time"] = notification_time

    stored = await session.update(fields)
    emit_event(
        "onboarding_completed",
        user_id=stored.id,
        topics=len(stored.selected_topics),
        notifications_enabled=stored.notifications_enabled,
        platform=capabilities.name,
    )
    return stored


__all__ = ["DEFAULT_NOTIFICATION_TIME", "complete_onboarding", "save_topics"]
