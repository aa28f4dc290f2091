"""API-facing Pydantic models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = "ok"


class SessionSummaryResponse(BaseModel):
    stream_sid: str | None = None
    call_sid: str | None = None
    telephony_open: bool = False
    ai_open: bool = False
    latest_media_timestamp: int = 0
    transcript_entries: int = 0
    termination_reason: str | None = None


class CallContextRequest(BaseModel):
    candidate_name: str | None = Field(default=None, description="Name the assistant confirms at the start of the call.")
    location: str | None = None
    product: str | None = Field(default=None, description="Product line the candidate has sold.")


class CallRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    call_sid: str
    candidate_name: str | None = None
    location: str | None = None
    product: str | None = None
    status: str
    transcript: str | None = None
    analysis: str | None = None
    metrics: dict[str, Any] = Field(default_factory=dict)
    termination_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class EndCallRequest(BaseModel):
    call_sid: str | None = Field(default=None, alias="callSid")

    model_config = ConfigDict(populate_by_name=True)
