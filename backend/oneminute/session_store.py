"""Authoritative in-memory copy of the signed-in user's record.

The store moves through ``UNBOUND -> LOADING -> BOUND | SIGNED_OUT`` as
identity events arrive. ``auth_ready`` flips to true once, after the first
event settles (successfully or not), and stays true for the lifetime of the
store. Every mutation is written to the profile store before subscribers are
told about it.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from pydantic import ValidationError

from .errors import InvalidInput, NoActiveSession, PersistenceFailed
from .identity import Identity, IdentityProvider
from .progression import level_for_xp
from .telemetry import emit_event
from .user_profile import ProfileStore, UserRecord, create_user

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[UserRecord]], None]

_STORE_MANAGED_FIELDS = {"created_at", "updated_at"}
UPDATABLE_FIELDS = frozenset(UserRecord.model_fields) - _STORE_MANAGED_FIELDS - {"id"}


class SessionState(str, Enum):
    UNBOUND = "unbound"
    LOADING = "loading"
    BOUND = "bound"
    SIGNED_OUT = "signed_out"


class SessionStore:
    def __init__(self, profiles: ProfileStore) -> None:
        self._profiles = profiles
        self._state = SessionState.UNBOUND
        self._user: Optional[UserRecord] = None
        self._auth_ready = False
        self._ready_waiters: List[asyncio.Future[None]] = []
        self._listeners: List[SessionListener] = []
        self._detach: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def auth_ready(self) -> bool:
        return self._auth_ready

    @property
    def pending_ready_waiters(self) -> int:
        return len(self._ready_waiters)

    def attach(self, provider: IdentityProvider) -> None:
        if self._detach is not None:
            raise RuntimeError("Session store is already attached to an identity provider.")
        self._detach = provider.subscribe(self.on_auth_event)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def current(self) -> Optional[UserRecord]:
        return self._user.model_copy(deep=True) if self._user else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_until_ready(self) -> None:
        """Suspend until the first auth event has settled.

        A cancelled waiter is dropped from the waiter list so nothing is
        resolved on its behalf later.
        """
        if self._auth_ready:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._ready_waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._ready_waiters:
                self._ready_waiters.remove(waiter)

    async def on_auth_event(self, identity: Optional[Identity]) -> None:
        self._state = SessionState.LOADING
        try:
            if identity is None:
                self._transition(SessionState.SIGNED_OUT, None)
            else:
                self._transition(SessionState.BOUND, self._load_or_create(identity))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to load profile during auth event")
            self._transition(SessionState.SIGNED_OUT, None)
            raise PersistenceFailed(f"Could not load the user profile: {exc}") from exc
        finally:
            self._mark_ready()

    async def update(self, partial: Mapping[str, Any]) -> UserRecord:
        user = self._user
        if user is None:
            raise NoActiveSession("No signed-in user to update.")
        fields = dict(partial)
        self._check_update(user, fields)
        try:
            merged = UserRecord.model_validate({**user.model_dump(), **fields})
        except ValidationError as exc:
            raise InvalidInput(f"Invalid profile update: {exc}") from exc

        payload = {key: getattr(merged, key) for key in fields}
        if "xp" in payload:
            payload["level"] = merged.level
        try:
            stored = self._profiles.update(user.id, payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Profile update for %s failed: %s", user.id, exc)
            raise PersistenceFailed(f"Could not persist profile update: {exc}") from exc

        self._user = stored
        self._publish()
        return stored.model_copy(deep=True)

    def _check_update(self, user: UserRecord, fields: Mapping[str, Any]) -> None:
        if "id" in fields and fields["id"] != user.id:
            raise InvalidInput("The user id cannot be changed.")
        unknown = set(fields) - UPDATABLE_FIELDS - {"id"}
        if unknown:
            raise InvalidInput(f"Unknown or read-only profile fields: {', '.join(sorted(unknown))}")
        if "level" in fields and fields["level"] != level_for_xp(fields.get("xp", user.xp)):
            raise InvalidInput("level is derived from xp and cannot be set independently.")
        if user.onboarding_complete and fields.get("onboarding_complete") is False:
            raise InvalidInput("Onboarding cannot be reverted once complete.")

    def _load_or_create(self, identity: Identity) -> UserRecord:
        record = self._profiles.get(identity.user_id)
        if record is not None:
            logger.info("Loaded profile %s", identity.user_id)
            return record
        record = self._profiles.create(create_user(identity.user_id, identity.is_anonymous))
        logger.info("Created profile %s", identity.user_id)
        emit_event("profile_created", user_id=identity.user_id, is_anonymous=identity.is_anonymous)
        return record

    def _transition(self, state: SessionState, user: Optional[UserRecord]) -> None:
        self._state = state
        self._user = user
        self._publish()

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.current())
            except Exception:  # noqa: BLE001
                logger.exception("Session listener failed")

    def _mark_ready(self) -> None:
        if self._auth_ready:
            return
        self._auth_ready = True
        waiters, self._ready_waiters = self._ready_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        emit_event("auth_ready", state=self._state.value, bound=self._user is not None)


__all__ = [
    "SessionListener",
    "SessionState",
    "SessionStore",
    "UPDATABLE_FIELDS",
]
