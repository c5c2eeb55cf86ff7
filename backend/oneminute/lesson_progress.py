"""Per-lesson completion records and their persistence helpers."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from .config import Settings
from .db.session import session_scope

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"

CompletionStatus = Literal["not_started", "in_progress", "completed"]


if TYPE_CHECKING:
    from .repositories.lesson_progress import LessonProgressRepository


def _repo() -> "LessonProgressRepository":
    from .repositories.lesson_progress import lesson_progress as repository

    return repository


class CompletionRecord(BaseModel):
    """Progress of one user on one lesson, keyed by ``(user_id, lesson_id)``."""

    user_id: str
    lesson_id: str
    status: CompletionStatus = "not_started"
    xp_earned: int = Field(default=0, ge=0)
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_pending(self) -> bool:
        """Written before the profile is credited; promoted to completed afterwards."""
        return self.status == "in_progress"


class ProgressStore(Protocol):
    def get(self, user_id: str, lesson_id: str) -> Optional[CompletionRecord]:  # pragma: no cover
        ...

    def upsert(self, record: CompletionRecord) -> CompletionRecord:  # pragma: no cover
        ...

    def restore(
        self, user_id: str, lesson_id: str, previous: Optional[CompletionRecord]
    ) -> None:  # pragma: no cover
        ...

    def list_completed(self, user_id: str) -> List[CompletionRecord]:  # pragma: no cover
        ...


class DatabaseProgressStore:
    def get(self, user_id: str, lesson_id: str) -> Optional[CompletionRecord]:
        with session_scope(commit=False) as session:
            return _repo().get(session, user_id, lesson_id)

    def upsert(self, record: CompletionRecord) -> CompletionRecord:
        with session_scope() as session:
            return _repo().upsert(session, record)

    def restore(self, user_id: str, lesson_id: str, previous: Optional[CompletionRecord]) -> None:
        with session_scope() as session:
            _repo().restore(session, user_id, lesson_id, previous)

    def list_completed(self, user_id: str) -> List[CompletionRecord]:
        with session_scope(commit=False) as session:
            return _repo().list_completed(session, user_id)


class JsonProgressStore:
    """File-backed progress persistence mirroring the database store API.

    The file nests records as ``{user_id: {lesson_id: record}}`` so that no
    pair of identifiers can share a slot.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or DATA_DIR / "user_lesson_progress.json"
        self._lock = threading.RLock()

    def _load_unlocked(self) -> Dict[str, Dict[str, CompletionRecord]]:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        records: Dict[str, Dict[str, CompletionRecord]] = {}
        for user_id, lessons in raw.items():
            for lesson_id, payload in lessons.items():
                try:
                    record = CompletionRecord.model_validate(payload)
                except Exception:  # noqa: BLE001
                    logger.exception("Failed to parse stored lesson progress %s/%s", user_id, lesson_id)
                    continue
                if (record.user_id, record.lesson_id) != (user_id, lesson_id):
                    logger.warning("Ignoring misfiled lesson progress under %s/%s", user_id, lesson_id)
                    continue
                records.setdefault(user_id, {})[lesson_id] = record
        return records

    def _write_unlocked(self, records: Dict[str, Dict[str, CompletionRecord]]) -> None:
        payload = {
            user_id: {lesson_id: record.model_dump(mode="json") for lesson_id, record in lessons.items()}
            for user_id, lessons in records.items()
            if lessons
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)

    def get(self, user_id: str, lesson_id: str) -> Optional[CompletionRecord]:
        with self._lock:
            record = self._load_unlocked().get(user_id, {}).get(lesson_id)
            return record.model_copy() if record else None

    def upsert(self, record: CompletionRecord) -> CompletionRecord:
        now = datetime.now(timezone.utc)
        with self._lock:
            records = self._load_unlocked()
            lessons = records.setdefault(record.user_id, {})
            existing = lessons.get(record.lesson_id)
            created_at = existing.created_at if existing and existing.created_at else now
            stored = record.model_copy(update={"created_at": created_at, "updated_at": now})
            lessons[record.lesson_id] = stored
            self._write_unlocked(records)
            return stored.model_copy()

    def restore(self, user_id: str, lesson_id: str, previous: Optional[CompletionRecord]) -> None:
        with self._lock:
            records = self._load_unlocked()
            lessons = records.setdefault(user_id, {})
            if previous is None:
                lessons.pop(lesson_id, None)
            else:
                lessons[lesson_id] = previous.model_copy()
            self._write_unlocked(records)

    def list_completed(self, user_id: str) -> List[CompletionRecord]:
        with self._lock:
            completed = [r for r in self._load_unlocked().get(user_id, {}).values() if r.is_completed]
        completed.sort(key=lambda r: r.completed_at or datetime.min.replace(tzinfo=timezone.utc))
        return completed


def build_progress_store(settings: Settings, *, data_dir: Optional[Path] = None) -> ProgressStore:
    if settings.persistence_mode == "database":
        return DatabaseProgressStore()
    return JsonProgressStore((data_dir or DATA_DIR) / "user_lesson_progress.json")


__all__ = [
    "CompletionRecord",
    "CompletionStatus",
    "DatabaseProgressStore",
    "JsonProgressStore",
    "ProgressStore",
    "build_progress_store",
]
