"""Process-wide service container wired from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Optional

from .access_gate import AccessGate
from .capabilities import CapabilityProvider, select_capabilities
from .clock import local_today, normalise_timezone, utc_now
from .completion import CompletionWorkflow
from .config import Settings, get_settings
from .daily_selector import DailySelector
from .identity import LocalIdentityProvider
from .lesson_catalog import ContentStore, build_content_store
from .lesson_progress import ProgressStore, build_progress_store
from .session_store import SessionStore
from . import telemetry_pipeline
from .topic_catalog import TopicStore, build_topic_store
from .user_profile import ProfileStore, build_profile_store

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    capabilities: CapabilityProvider
    identity: LocalIdentityProvider
    profiles: ProfileStore
    progress: ProgressStore
    content: ContentStore
    topics: TopicStore
    session: SessionStore
    gate: AccessGate
    selector: DailySelector
    completion: CompletionWorkflow


def build_services(settings: Optional[Settings] = None, *, data_dir: Optional[Path] = None) -> AppServices:
    settings = settings or get_settings()
    capabilities = select_capabilities(settings)
    profiles = build_profile_store(settings, data_dir=data_dir)
    if settings.persistence_mode == "database":
        telemetry_pipeline.install()
    progress = build_progress_store(settings, data_dir=data_dir)
    content = build_content_store(settings, capabilities)
    topics = build_topic_store(settings, capabilities)
    today = partial(local_today, normalise_timezone(settings.timezone))

    identity = LocalIdentityProvider()
    session = SessionStore(profiles)
    session.attach(identity)

    logger.info(
        "Services ready (persistence=%s, platform=%s, timezone=%s)",
        settings.persistence_mode,
        capabilities.name,
        settings.timezone,
    )
    return AppServices(
        settings=settings,
        capabilities=capabilities,
        identity=identity,
        profiles=profiles,
        progress=progress,
        content=content,
        topics=topics,
        session=session,
        gate=AccessGate(session),
        selector=DailySelector(content, session, today=today),
        completion=CompletionWorkflow(session, progress, content, today=today, now=utc_now),
    )


_services: Optional[AppServices] = None


def get_services() -> AppServices:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Optional[AppServices]) -> None:
    global _services
    _services = services


def reset_services() -> None:
    global _services
    if _services is not None:
        _services.session.detach()
    _services = None


__all__ = ["AppServices", "build_services", "get_services", "reset_services", "set_services"]
