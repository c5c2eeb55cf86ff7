"""In-process event bus for progression and session events.

Every event is logged as a single ``TELEMETRY`` JSON line; listeners
(the database audit trail, tests) receive the same payload.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from threading import Lock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("oneminute.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Listener] = []
_lock = Lock()


def register_listener(listener: Listener) -> None:
    with _lock:
        _listeners.append(listener)


def unregister_listener(listener: Listener) -> None:
    with _lock:
        if listener in _listeners:
            _listeners.remove(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Publish ``name`` to every listener; a failing listener is logged and skipped."""
    # Dates and datetimes travel as ISO strings so listeners can store them as JSON.
    payload = {key: value.isoformat() if isinstance(value, date) else value for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)
    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))


__all__ = [
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
