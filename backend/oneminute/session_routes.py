"""Session endpoints: sign-in, restore, sign-out, and flow gating."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from .access_gate import GateDecision
from .errors import ProgressError, as_http_exception
from .services import AppServices, get_services
from .user_profile import UserRecord

router = APIRouter(prefix="/api", tags=["session"])
logger = logging.getLogger(__name__)


class SessionPayload(BaseModel):
    state: str
    auth_ready: bool
    user: Optional[UserRecord] = None


class RestoreRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    is_anonymous: bool = True


def _session_payload(services: AppServices) -> SessionPayload:
    return SessionPayload(
        state=services.session.state.value,
        auth_ready=services.session.auth_ready,
        user=services.session.current(),
    )


@router.get("/session", response_model=SessionPayload, status_code=status.HTTP_200_OK)
def get_session(services: AppServices = Depends(get_services)) -> SessionPayload:
    return _session_payload(services)


@router.post("/session/anonymous", response_model=SessionPayload, status_code=status.HTTP_200_OK)
async def sign_in_anonymously(services: AppServices = Depends(get_services)) -> SessionPayload:
    try:
        await services.identity.sign_in_anonymously()
    except ProgressError as exc:
        raise as_http_exception(exc) from exc
    return _session_payload(services)


@router.post("/session/restore", response_model=SessionPayload, status_code=status.HTTP_200_OK)
async def restore_session(
    request: RestoreRequest,
    services: AppServices = Depends(get_services),
) -> SessionPayload:
    try:
        await services.identity.restore(request.user_id, is_anonymous=request.is_anonymous)
    except ProgressError as exc:
        raise as_http_exception(exc) from exc
    return _session_payload(services)


@router.post("/session/sign-out", response_model=SessionPayload, status_code=status.HTTP_200_OK)
async def sign_out(services: AppServices = Depends(get_services)) -> SessionPayload:
    await services.identity.sign_out()
    return _session_payload(services)


@router.get("/gate/{flow}", response_model=GateDecision, status_code=status.HTTP_200_OK)
async def evaluate_gate(flow: str, services: AppServices = Depends(get_services)) -> GateDecision:
    try:
        return await services.gate.evaluate(flow)
    except ProgressError as exc:
        raise as_http_exception(exc) from exc


__all__ = ["router"]
