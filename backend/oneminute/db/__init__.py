"""Database utilities for the OneMinute Skill backend."""

from .session import dispose_engine, get_engine, session_scope

__all__ = ["dispose_engine", "get_engine", "session_scope"]
