"""Database-backed lesson progress repository."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import LessonProgressModel, PersistenceAuditEventModel
from ..lesson_progress import CompletionRecord


class LessonProgressRepository:
    """Upsert-only access to ``user_lesson_progress`` keyed by user and lesson."""

    def get(self, session: Session, user_id: str, lesson_id: str) -> Optional[CompletionRecord]:
        model = self._find(session, user_id, lesson_id)
        return self._to_domain(model) if model else None

    def upsert(self, session: Session, record: CompletionRecord) -> CompletionRecord:
        model = self._find(session, record.user_id, record.lesson_id)
        if model is None:
            model = LessonProgressModel(user_id=record.user_id, lesson_id=record.lesson_id)
            session.add(model)
        model.status = record.status
        model.xp_earned = record.xp_earned
        model.completed_at = record.completed_at
        session.flush()
        session.refresh(model)
        session.add(
            PersistenceAuditEventModel(
                user_id=record.user_id,
                event_type="lesson_progress_upsert",
                payload={"lesson_id": record.lesson_id, "status": record.status},
                actor="system",
            )
        )
        return self._to_domain(model)

    def restore(
        self,
        session: Session,
        user_id: str,
        lesson_id: str,
        previous: Optional[CompletionRecord],
    ) -> None:
        if previous is None:
            session.execute(
                delete(LessonProgressModel).where(
                    LessonProgressModel.user_id == user_id,
                    LessonProgressModel.lesson_id == lesson_id,
                )
            )
            return
        model = self._find(session, user_id, lesson_id)
        if model is None:
            model = LessonProgressModel(user_id=user_id, lesson_id=lesson_id)
            session.add(model)
        model.status = previous.status
        model.xp_earned = previous.xp_earned
        model.completed_at = previous.completed_at
        session.flush()

    def list_completed(self, session: Session, user_id: str) -> List[CompletionRecord]:
        stmt = (
            select(LessonProgressModel)
            .where(LessonProgressModel.user_id == user_id, LessonProgressModel.status == "completed")
            .order_by(LessonProgressModel.completed_at.asc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars().all()]

    def _find(self, session: Session, user_id: str, lesson_id: str) -> Optional[LessonProgressModel]:
        stmt = select(LessonProgressModel).where(
            LessonProgressModel.user_id == user_id,
            LessonProgressModel.lesson_id == lesson_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(model: LessonProgressModel) -> CompletionRecord:
        return CompletionRecord(
            user_id=model.user_id,
            lesson_id=model.lesson_id,
            status=model.status,  # type: ignore[arg-type]
            xp_earned=model.xp_earned,
            completed_at=model.completed_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


lesson_progress = LessonProgressRepository()

__all__ = ["LessonProgressRepository", "lesson_progress"]
