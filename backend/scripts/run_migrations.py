"""Bring the OneMinute schema to a revision, then optionally load the bundled catalog.

The database may still be starting when a deploy runs this, so the upgrade
waits for a ``SELECT 1`` to succeed first.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Tuple

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from oneminute.logging_config import configure_logging

LOGGER = logging.getLogger("oneminute.migrations")
URL_PLACEHOLDER = "%(ONEMINUTE_DATABASE_URL)s"
BACKEND_ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upgrade the OneMinute database schema.")
    parser.add_argument("--revision", default="head", help="Target revision (default: head).")
    parser.add_argument("--timeout", type=int, default=60, help="Seconds to wait for the database.")
    parser.add_argument("--poll-interval", type=float, default=3.0, help="Seconds between connection attempts.")
    parser.add_argument(
        "--seed-catalog",
        action="store_true",
        help="Load the bundled topics and lessons after upgrading.",
    )
    return parser.parse_args(argv)


def get_alembic_config() -> Config:
    config = Config(str(BACKEND_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url and url != URL_PLACEHOLDER:
        return url
    env_url = os.getenv("ONEMINUTE_DATABASE_URL")
    if not env_url:
        raise RuntimeError("ONEMINUTE_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url.replace("%", "%%"))
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    """Retry ``SELECT 1`` until it succeeds; connection refusals are retried, other errors are not."""
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    deadline = time.time() + timeout
    last_error: Optional[Exception] = None
    try:
        while time.time() < deadline:
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Database is reachable.")
                return
            except OperationalError as exc:
                last_error = exc
                LOGGER.warning("Database not ready yet: %s", exc)
            except SQLAlchemyError as exc:
                last_error = exc
                break
            time.sleep(poll_interval)
    finally:
        engine.dispose()
    raise RuntimeError("Database did not become ready in time.") from last_error


def seed_catalog() -> Tuple[int, int]:
    from scripts.backfill_json_stores import backfill_lessons, backfill_topics
    from oneminute.lesson_catalog import BUNDLED_CATALOG_PATH
    from oneminute.topic_catalog import BUNDLED_TOPICS_PATH

    return backfill_topics(BUNDLED_TOPICS_PATH), backfill_lessons(BUNDLED_CATALOG_PATH)


def run_migrations(
    revision: str,
    *,
    timeout: int,
    poll_interval: float,
    config: Optional[Config] = None,
    seed: bool = False,
) -> None:
    config = config or get_alembic_config()
    database_url = resolve_database_url(config)
    LOGGER.info("Upgrading to %s (timeout=%ss)", revision, timeout)
    wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)
    command.upgrade(config, revision)
    if seed:
        topic_count, lesson_count = seed_catalog()
        LOGGER.info("Seeded %d topics and %d lessons.", topic_count, lesson_count)


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            seed=args.seed_catalog,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
