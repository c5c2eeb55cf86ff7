"""Database-backed user profile repository."""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import PersistenceAuditEventModel, UserProfileModel
from ..user_profile import UserRecord

_PROFILE_FIELDS = (
    "is_anonymous",
    "display_name",
    "xp",
    "level",
    "current_streak",
    "longest_streak",
    "total_lessons_completed",
    "onboarding_complete",
    "selected_topics",
    "notifications_enabled",
    "notification_time",
    "last_completion_date",
    "cached_daily_lesson_id",
    "cached_daily_lesson_date",
    "last_credited_lesson_id",
)


class UserProfileRepository:
    """Maps ``UserRecord`` onto the ``user_profiles`` table."""

    def get(self, session: Session, user_id: str) -> UserRecord | None:
        model = session.get(UserProfileModel, user_id)
        if model is None:
            return None
        return self._to_domain(model)

    def create(self, session: Session, record: UserRecord) -> UserRecord:
        if session.get(UserProfileModel, record.id) is not None:
            raise ValueError(f"User profile '{record.id}' already exists.")
        model = UserProfileModel(id=record.id)
        self._apply_fields(model, record.model_dump(include=set(_PROFILE_FIELDS)))
        session.add(model)
        session.flush()
        session.refresh(model)
        self._record_audit(session, model.id, "profile_create", {"is_anonymous": model.is_anonymous})
        return self._to_domain(model)

    def update(self, session: Session, user_id: str, fields: Dict[str, Any]) -> UserRecord:
        model = session.get(UserProfileModel, user_id)
        if model is None:
            raise LookupError(f"User profile '{user_id}' was not found.")
        changed = self._apply_fields(model, fields)
        if changed:
            session.flush()
            session.refresh(model)
            self._record_audit(session, model.id, "profile_update", {"fields": sorted(changed)})
        return self._to_domain(model)

    def _apply_fields(self, model: UserProfileModel, fields: Dict[str, Any]) -> list[str]:
        changed: list[str] = []
        for key, value in fields.items():
            if key not in _PROFILE_FIELDS:
                continue
            if key == "selected_topics":
                value = list(value or [])
            if getattr(model, key) != value:
                setattr(model, key, value)
                changed.append(key)
        return changed

    def _to_domain(self, model: UserProfileModel) -> UserRecord:
        payload: Dict[str, Any] = {key: getattr(model, key) for key in _PROFILE_FIELDS}
        payload["id"] = model.id
        payload["selected_topics"] = list(model.selected_topics or [])
        payload["created_at"] = model.created_at
        payload["updated_at"] = model.updated_at
        return UserRecord.model_validate(payload)

    def record_telemetry_event(
        self, session: Session, user_id: str, event_type: str, payload: Dict[str, Any]
    ) -> bool:
        if session.get(UserProfileModel, user_id) is None:
            return False
        self._record_audit(session, user_id, event_type, dict(payload))
        return True

    def recent_telemetry_events(
        self, session: Session, user_id: str, limit: int = 50
    ) -> List[PersistenceAuditEventModel]:
        stmt = (
            select(PersistenceAuditEventModel)
            .where(PersistenceAuditEventModel.user_id == user_id)
            .order_by(PersistenceAuditEventModel.created_at.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())

    def _record_audit(self, session: Session, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        session.add(
            PersistenceAuditEventModel(
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                actor="system",
            )
        )


user_profiles = UserProfileRepository()

__all__ = ["UserProfileRepository", "user_profiles"]
