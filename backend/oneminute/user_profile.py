"""User record model and profile persistence helpers."""

from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import Settings
from .db.session import session_scope
from .progression import level_for_xp

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
NOTIFICATION_TIME_FORMAT = "%H:%M"


if TYPE_CHECKING:
    from .repositories.user_profiles import UserProfileRepository


def _repo() -> "UserProfileRepository":
    from .repositories.user_profiles import user_profiles as repository

    return repository


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    """Progress-bearing profile for one account.

    ``level`` is always re-derived from ``xp``; whatever value arrives for it
    is overwritten during validation.
    """

    id: str = Field(..., min_length=1)
    is_anonymous: bool = True
    display_name: Optional[str] = None
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    total_lessons_completed: int = Field(default=0, ge=0)
    onboarding_complete: bool = False
    selected_topics: List[str] = Field(default_factory=list)
    notifications_enabled: bool = True
    notification_time: Optional[str] = None
    last_completion_date: Optional[date] = None
    cached_daily_lesson_id: Optional[str] = None
    cached_daily_lesson_date: Optional[date] = None
    last_credited_lesson_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("selected_topics")
    @classmethod
    def _dedupe_topics(cls, topics: List[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for topic in topics:
            trimmed = topic.strip()
            if trimmed:
                seen.setdefault(trimmed, None)
        return list(seen)

    @field_validator("notification_time")
    @classmethod
    def _check_notification_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            parsed = datetime.strptime(value.strip(), NOTIFICATION_TIME_FORMAT)
        except ValueError as exc:
            raise ValueError(f"Notification time must be HH:MM, got {value!r}.") from exc
        return parsed.strftime(NOTIFICATION_TIME_FORMAT)

    @model_validator(mode="after")
    def _derive_level(self) -> "UserRecord":
        self.level = level_for_xp(self.xp)
        if self.longest_streak < self.current_streak:
            raise ValueError(
                f"longest_streak ({self.longest_streak}) cannot trail current_streak ({self.current_streak})."
            )
        return self


def create_user(user_id: str, is_anonymous: bool = True) -> UserRecord:
    """New account defaults: no XP, level 1, onboarding pending."""
    return UserRecord(id=user_id, is_anonymous=is_anonymous)


class ProfileStore(Protocol):
    """Persistence contract for user records."""

    def get(self, user_id: str) -> Optional[UserRecord]:  # pragma: no cover - protocol definition
        ...

    def create(self, record: UserRecord) -> UserRecord:  # pragma: no cover - protocol definition
        ...

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:  # pragma: no cover - protocol definition
        ...


class DatabaseProfileStore:
    """Profile persistence backed by the SQLAlchemy repository."""

    def get(self, user_id: str) -> Optional[UserRecord]:
        with session_scope(commit=False) as session:
            return _repo().get(session, user_id)

    def create(self, record: UserRecord) -> UserRecord:
        with session_scope() as session:
            return _repo().create(session, record)

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        with session_scope() as session:
            return _repo().update(session, user_id, fields)


class JsonProfileStore:
    """File-backed profile persistence used for offline and local modes."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or DATA_DIR / "user_profiles.json"
        self._lock = threading.RLock()

    def _load_unlocked(self) -> Dict[str, UserRecord]:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        records: Dict[str, UserRecord] = {}
        for key, payload in raw.items():
            try:
                records[key] = UserRecord.model_validate(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to parse stored user profile %s", key)
        return records

    def _write_unlocked(self, records: Dict[str, UserRecord]) -> None:
        payload = {user_id: record.model_dump(mode="json") for user_id, record in records.items()}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)

    def get(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            record = self._load_unlocked().get(user_id)
            return record.model_copy(deep=True) if record else None

    def create(self, record: UserRecord) -> UserRecord:
        with self._lock:
            records = self._load_unlocked()
            if record.id in records:
                raise ValueError(f"User profile '{record.id}' already exists.")
            now = _now()
            stored = record.model_copy(update={"created_at": now, "updated_at": now}, deep=True)
            records[record.id] = stored
            self._write_unlocked(records)
            return stored.model_copy(deep=True)

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        with self._lock:
            records = self._load_unlocked()
            existing = records.get(user_id)
            if existing is None:
                raise LookupError(f"User profile '{user_id}' was not found.")
            payload = existing.model_dump()
            payload.update(fields)
            payload["updated_at"] = _now()
            stored = UserRecord.model_validate(payload)
            records[user_id] = stored
            self._write_unlocked(records)
            return stored.model_copy(deep=True)


def build_profile_store(settings: Settings, *, data_dir: Optional[Path] = None) -> ProfileStore:
    if settings.persistence_mode == "database":
        return DatabaseProfileStore()
    return JsonProfileStore((data_dir or DATA_DIR) / "user_profiles.json")


__all__ = [
    "DatabaseProfileStore",
    "JsonProfileStore",
    "ProfileStore",
    "UserRecord",
    "build_profile_store",
    "create_user",
]
