from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from oneminute.config import get_settings
from oneminute.db.base import Base
from oneminute.db.session import dispose_engine, get_engine
from oneminute.lesson_catalog import BUNDLED_CATALOG_PATH, DatabaseContentStore
from oneminute.lesson_progress import CompletionRecord, DatabaseProgressStore, JsonProgressStore
from oneminute.topic_catalog import BUNDLED_TOPICS_PATH, DatabaseTopicStore
from oneminute.user_profile import DatabaseProfileStore, JsonProfileStore, create_user
from scripts import backfill_json_stores as backfill


@pytest.fixture
def database(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ONEMINUTE_DATABASE_URL", f"sqlite:///{tmp_path / 'backfill.sqlite'}")
    get_settings.cache_clear()
    dispose_engine()
    Base.metadata.create_all(get_engine())
    yield
    dispose_engine()
    get_settings.cache_clear()


def test_backfill_lessons_imports_bundled_catalog(database) -> None:
    imported = backfill.backfill_lessons(BUNDLED_CATALOG_PATH)

    assert imported == 13
    assert len(DatabaseContentStore().list_lessons()) == imported
    assert backfill.backfill_lessons(BUNDLED_CATALOG_PATH) == imported


def test_backfill_topics_imports_bundled_topics(database) -> None:
    imported = backfill.backfill_topics(BUNDLED_TOPICS_PATH)

    assert imported == 8
    assert [topic.id for topic in DatabaseTopicStore().list_topics()][:2] == ["topic-tech", "topic-biz"]
    assert backfill.backfill_topics(BUNDLED_TOPICS_PATH) == imported


def test_backfill_profiles_and_progress(database, tmp_path: Path) -> None:
    profiles_path = tmp_path / "user_profiles.json"
    progress_path = tmp_path / "user_lesson_progress.json"
    JsonProfileStore(profiles_path).create(create_user("user-1"))
    progress = JsonProgressStore(progress_path)
    progress.upsert(
        CompletionRecord(
            user_id="user-1",
            lesson_id="lesson-tech-001",
            status="completed",
            xp_earned=10,
            completed_at=datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
        )
    )
    progress.upsert(CompletionRecord(user_id="ghost", lesson_id="lesson-tech-002", status="completed"))

    assert backfill.backfill_profiles(profiles_path) == 1
    assert backfill.backfill_profiles(profiles_path) == 0
    assert backfill.backfill_progress(progress_path) == 1

    assert DatabaseProfileStore().get("user-1") is not None
    completed = DatabaseProgressStore().list_completed("user-1")
    assert [record.lesson_id for record in completed] == ["lesson-tech-001"]


def test_backfill_skips_missing_and_invalid_files(database, tmp_path: Path) -> None:
    assert backfill.backfill_profiles(tmp_path / "missing.json") == 0
    assert backfill.backfill_progress(tmp_path / "missing.json") == 0

    broken = tmp_path / "profiles.json"
    broken.write_text(json.dumps({"bad": {"id": "bad", "xp": -5}}), encoding="utf-8")
    assert backfill.backfill_profiles(broken) == 0
