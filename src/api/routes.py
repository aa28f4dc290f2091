"""FastAPI routes for health, the live session and call records."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_coordinator, get_repository
from api.schemas import CallContextRequest, CallRecordResponse, HealthResponse, SessionSummaryResponse
from db.repository import CallRepository
from relay.coordinator import SessionCoordinator
from relay.errors import CallNotFoundError

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/session", response_model=SessionSummaryResponse)
async def current_session(
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> SessionSummaryResponse:
    return SessionSummaryResponse(**coordinator.session.summary())


@router.put("/calls/{call_sid}/context", response_model=CallRecordResponse)
async def register_call_context(
    call_sid: str,
    payload: CallContextRequest,
    repo: CallRepository = Depends(get_repository),
) -> CallRecordResponse:
    record = await repo.register_call(
        call_sid,
        candidate_name=payload.candidate_name,
        location=payload.location,
        product=payload.product,
    )
    LOGGER.info("Registered context for call %s", call_sid)
    return CallRecordResponse.model_validate(record)


@router.get("/calls/{call_sid}", response_model=CallRecordResponse)
async def get_call(
    call_sid: str,
    repo: CallRepository = Depends(get_repository),
) -> CallRecordResponse:
    record = await repo.get_call(call_sid)
    if record is None:
        raise CallNotFoundError(f"Call {call_sid} not found")
    return CallRecordResponse.model_validate(record)
