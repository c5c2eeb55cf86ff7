"""Identity provider contract and the in-process implementation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_anonymous: bool = True


AuthListener = Callable[[Optional[Identity]], Awaitable[None]]


class IdentityProvider(Protocol):
    def subscribe(self, listener: AuthListener) -> Callable[[], None]:  # pragma: no cover
        ...


class LocalIdentityProvider:
    """Emits sign-in, restore, and sign-out events to subscribed listeners.

    Listeners are awaited in subscription order; an exception raised by a
    listener propagates to whoever triggered the event.
    """

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []
        self._current: Optional[Identity] = None

    @property
    def current(self) -> Optional[Identity]:
        return self._current

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self, user_id: Optional[str] = None, *, is_anonymous: bool = True) -> Optional[Identity]:
        """Settle the initial auth state: restore ``user_id`` or report no identity."""
        if user_id:
            return await self.restore(user_id, is_anonymous=is_anonymous)
        await self._emit(None)
        return None

    async def restore(self, user_id: str, *, is_anonymous: bool = True) -> Identity:
        identity = Identity(user_id=user_id, is_anonymous=is_anonymous)
        await self._emit(identity)
        return identity

    async def sign_in_anonymously(self) -> Identity:
        identity = Identity(user_id=uuid.uuid4().hex, is_anonymous=True)
        logger.info("Signed in anonymously as %s", identity.user_id)
        await self._emit(identity)
        return identity

    async def sign_out(self) -> None:
        logger.info("Signing out %s", self._current.user_id if self._current else "<none>")
        await self._emit(None)

    async def _emit(self, identity: Optional[Identity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            await listener(identity)


__all__ = [
    "AuthListener",
    "Identity",
    "IdentityProvider",
    "LocalIdentityProvider",
]
