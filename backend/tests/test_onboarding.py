from __future__ import annotations

from pathlib import Path

import pytest

from oneminute.capabilities import NativeCapabilities, WebCapabilities
from oneminute.errors import InvalidInput, NoActiveSession
from oneminute.identity import Identity
from oneminute.onboarding import DEFAULT_NOTIFICATION_TIME, complete_onboarding, save_topics
from oneminute.session_store import SessionStore
from oneminute.topic_catalog import BundledTopicStore, Topic
from oneminute.user_profile import JsonProfileStore

CATALOG = BundledTopicStore()


async def _signed_in(tmp_path: Path) -> SessionStore:
    session = SessionStore(JsonProfileStore(tmp_path / "profiles.json"))
    await session.on_auth_event(Identity("user-1"))
    return session


async def test_save_topics_dedupes_and_keeps_order(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)

    user = await save_topics(session, [" topic-tech", "topic-biz", "topic-tech"], catalog=CATALOG)

    assert user.selected_topics == ["topic-tech", "topic-biz"]
    assert user.onboarding_complete is False


async def test_save_topics_rejects_bad_input(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)
    with pytest.raises(InvalidInput):
        await save_topics(session, "topic-tech", catalog=CATALOG)
    with pytest.raises(InvalidInput):
        await save_topics(session, ["topic-tech", ""], catalog=CATALOG)


async def test_onboarding_requires_session(tmp_path: Path) -> None:
    session = SessionStore(JsonProfileStore(tmp_path / "profiles.json"))
    with pytest.raises(NoActiveSession):
        await save_topics(session, ["topic-tech"], catalog=CATALOG)
    with pytest.raises(NoActiveSession):
        await complete_onboarding(session, NativeCapabilities(), catalog=CATALOG)


async def test_complete_onboarding_on_native(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)

    user = await complete_onboarding(
        session,
        NativeCapabilities(),
        catalog=CATALOG,
        selected_topics=["topic-health"],
        notification_time="7:05",
    )

    assert user.onboarding_complete is True
    assert user.selected_topics == ["topic-health"]
    assert user.notifications_enabled is True
    assert user.notification_time == "07:05"


async def test_complete_onboarding_defaults_reminder_time(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)
    await save_topics(session, ["topic-tech"], catalog=CATALOG)

    user = await complete_onboarding(session, NativeCapabilities(), catalog=CATALOG)

    assert user.selected_topics == ["topic-tech"]
    assert user.notification_time == DEFAULT_NOTIFICATION_TIME


async def test_complete_onboarding_on_web_disables_reminders(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)

    user = await complete_onboarding(session, WebCapabilities(), catalog=CATALOG, notifications_enabled=True)

    assert user.onboarding_complete is True
    assert user.notifications_enabled is False


async def test_invalid_reminder_time_is_rejected(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)
    with pytest.raises(InvalidInput):
        await complete_onboarding(session, NativeCapabilities(), catalog=CATALOG, notification_time="noon")
    user = session.current()
    assert user is not None and user.onboarding_complete is False


async def test_unknown_topic_ids_are_rejected(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)

    with pytest.raises(InvalidInput, match="topic-astrology"):
        await save_topics(session, ["topic-tech", "topic-astrology"], catalog=CATALOG)
    with pytest.raises(InvalidInput):
        await complete_onboarding(
            session, NativeCapabilities(), catalog=CATALOG, selected_topics=["topic-astrology"]
        )

    user = session.current()
    assert user is not None
    assert user.selected_topics == []
    assert user.onboarding_complete is False


class _StaticTopics:
    def __init__(self, *topics: Topic) -> None:
        self._topics = list(topics)

    def list_topics(self) -> list[Topic]:
        return list(self._topics)


async def test_inactive_topics_cannot_be_selected(tmp_path: Path) -> None:
    session = await _signed_in(tmp_path)
    catalog = _StaticTopics(
        Topic(id="topic-live", name="Live", category="SCIENCE"),
        Topic(id="topic-retired", name="Retired", category="SCIENCE", is_active=False),
    )

    user = await save_topics(session, ["topic-live"], catalog=catalog)
    assert user.selected_topics == ["topic-live"]
    with pytest.raises(InvalidInput):
        await save_topics(session, ["topic-retired"], catalog=catalog)
