"""Copy the JSON file stores and the bundled topic and lesson catalogs into the database."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from oneminute.db.base import Base
from oneminute.db.session import get_engine, session_scope
from oneminute.lesson_catalog import BUNDLED_CATALOG_PATH, BundledContentStore
from oneminute.lesson_progress import CompletionRecord
from oneminute.repositories.lesson_progress import lesson_progress
from oneminute.repositories.lessons import lessons
from oneminute.repositories.topics import topics
from oneminute.topic_catalog import BUNDLED_TOPICS_PATH, BundledTopicStore
from oneminute.repositories.user_profiles import user_profiles
from oneminute.user_profile import DATA_DIR, UserRecord


logger = logging.getLogger("backfill")


def _ensure_database() -> None:
    engine = get_engine()
    Base.metadata.create_all(engine)


def _load_json(path: Path) -> Dict[str, object] | list[object]:
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def backfill_lessons(path: Path) -> int:
    catalog = BundledContentStore(path).list_lessons()
    with session_scope() as session:
        imported = lessons.save_lessons(session, catalog)
    logger.info("Imported %d lessons", imported)
    return imported


def backfill_topics(path: Path) -> int:
    catalog = BundledTopicStore(path).list_topics()
    with session_scope() as session:
        imported = topics.save_topics(session, catalog)
    logger.info("Imported %d topics", imported)
    return imported


def backfill_profiles(path: Path) -> int:
    if not path.exists():
        logger.info("No profile file found at %s", path)
        return 0
    payload = _load_json(path)
    records = payload.values() if isinstance(payload, dict) else payload
    imported = 0
    with session_scope() as session:
        for entry in records:
            try:
                record = UserRecord.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping invalid profile payload: %s", exc)
                continue
            if user_profiles.get(session, record.id) is not None:
                continue
            user_profiles.create(session, record)
            imported += 1
    logger.info("Imported %d user profiles", imported)
    return imported


def backfill_progress(path: Path) -> int:
    if not path.exists():
        logger.info("No lesson progress file found at %s", path)
        return 0
    payload = _load_json(path)
    if isinstance(payload, dict):
        records = [entry for lessons in payload.values() for entry in lessons.values()]
    else:
        records = list(payload)
    imported = 0
    with session_scope() as session:
        for entry in records:
            try:
                record = CompletionRecord.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping invalid progress payload: %s", exc)
                continue
            if user_profiles.get(session, record.user_id) is None:
                logger.warning("Skipping progress for %s; profile not found", record.user_id)
                continue
            lesson_progress.upsert(session, record)
            imported += 1
    logger.info("Imported %d lesson progress records", imported)
    return imported


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill the JSON stores into the SQL database.")
    parser.add_argument("--topics", type=Path, default=BUNDLED_TOPICS_PATH)
    parser.add_argument("--lessons", type=Path, default=BUNDLED_CATALOG_PATH)
    parser.add_argument("--profiles", type=Path, default=DATA_DIR / "user_profiles.json")
    parser.add_argument("--progress", type=Path, default=DATA_DIR / "user_lesson_progress.json")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args()
    _ensure_database()
    total_topics = backfill_topics(args.topics)
    total_lessons = backfill_lessons(args.lessons)
    total_profiles = backfill_profiles(args.profiles)
    total_progress = backfill_progress(args.progress)
    logger.info(
        "Backfill completed: %d topics, %d lessons, %d profiles, %d progress records",
        total_topics,
        total_lessons,
        total_profiles,
        total_progress,
    )


if __name__ == "__main__":
    main()
