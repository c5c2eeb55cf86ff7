"""Route authorization for the onboarding and main flows."""

from __future__ import annotations

import logging
from typing import Literal, Optional, get_args

from pydantic import BaseModel

from .errors import InvalidInput
from .session_store import SessionStore
from .user_profile import UserRecord

logger = logging.getLogger(__name__)

Flow = Literal["onboarding", "main"]
FLOWS: tuple[str, ...] = get_args(Flow)


class GateDecision(BaseModel):
    flow: Flow
    allowed: bool
    redirect_to: Optional[Flow] = None


def decide(flow: str, user: Optional[UserRecord]) -> GateDecision:
    """Decision table: onboarded users belong in main, everyone else in onboarding."""
    if flow not in FLOWS:
        raise InvalidInput(f"Unknown flow '{flow}'. Expected one of: {', '.join(FLOWS)}")
    onboarded = user is not None and user.onboarding_complete
    target: Flow = "main" if onboarded else "onboarding"
    if flow == target:
        return GateDecision(flow=flow, allowed=True)
    return GateDecision(flow=flow, allowed=False, redirect_to=target)  # type: ignore[arg-type]


class AccessGate:
    def __init__(self, session: SessionStore) -> None:
        self._session = session

    async def evaluate(self, flow: str) -> GateDecision:
        """Wait for auth to settle, then decide from a single session snapshot."""
        if flow not in FLOWS:
            raise InvalidInput(f"Unknown flow '{flow}'. Expected one of: {', '.join(FLOWS)}")
        await self._session.wait_until_ready()
        decision = decide(flow, self._session.current())
        if not decision.allowed:
            logger.info("Gate denied %s; redirecting to %s", flow, decision.redirect_to)
        return decision


__all__ = ["AccessGate", "FLOWS", "Flow", "GateDecision", "decide"]
