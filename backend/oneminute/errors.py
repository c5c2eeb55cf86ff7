"""Error taxonomy shared by the progression, session, and completion services."""

from __future__ import annotations

from fastapi import HTTPException, status


class ProgressError(Exception):
    """Base class for failures surfaced by the core services."""

    retryable = False
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidInput(ProgressError, ValueError):
    """Rejected synchronously: negative XP, malformed dates, invalid merges."""

    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class NoActiveSession(ProgressError):
    """An operation needed a bound user but the session has none."""

    http_status = status.HTTP_401_UNAUTHORIZED


class UnknownLesson(ProgressError, LookupError):
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, lesson_id: str) -> None:
        super().__init__(f"Lesson '{lesson_id}' is not in the catalog.")
        self.lesson_id = lesson_id


class UnknownTopic(ProgressError, LookupError):
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, topic_id: str) -> None:
        super().__init__(f"Topic '{topic_id}' is not in the catalog.")
        self.topic_id = topic_id


class NoContentAvailable(ProgressError):
    """The lesson catalog is empty."""

    http_status = status.HTTP_404_NOT_FOUND


class PersistenceFailed(ProgressError):
    """A store write failed; no partial state was kept and the caller may retry."""

    retryable = True
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def as_http_exception(exc: ProgressError) -> HTTPException:
    return HTTPException(
        status_code=exc.http_status,
        detail={"error": type(exc).__name__, "message": str(exc), "retryable": exc.retryable},
    )


__all__ = [
    "InvalidInput",
    "NoActiveSession",
    "NoContentAvailable",
    "PersistenceFailed",
    "ProgressError",
    "UnknownLesson",
    "UnknownTopic",
    "as_http_exception",
]
