"""Telemetry listener that stores progress events in the audit table."""

from __future__ import annotations

import logging
from typing import Set

from .db.session import session_scope
from .repositories.user_profiles import user_profiles
from .telemetry import TelemetryEvent, register_listener, unregister_listener

logger = logging.getLogger(__name__)

MONITORED_EVENTS: Set[str] = {
    "lesson_completed",
    "level_up",
    "onboarding_completed",
}

_installed = False


def persist_event(event: TelemetryEvent) -> None:
    if event.name not in MONITORED_EVENTS:
        return
    user_id = event.payload.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        return
    try:
        with session_scope() as session:
            user_profiles.record_telemetry_event(session, user_id, event.name, event.payload)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to persist telemetry event %s for user_id=%s", event.name, user_id)


def install() -> None:
    """Register the listener once per process."""
    global _installed
    if _installed:
        return
    register_listener(persist_event)
    _installed = True


def uninstall() -> None:
    global _installed
    unregister_listener(persist_event)
    _installed = False


__all__ = ["MONITORED_EVENTS", "install", "persist_event", "uninstall"]
