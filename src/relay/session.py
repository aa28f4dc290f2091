"""In-flight call state shared by the leg handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

from relay.metrics import CallMetrics

Role = Literal["user", "assistant", "system"]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Leg(Protocol):
    """A duplex JSON connection owned by the session."""

    @property
    def is_open(self) -> bool:  # pragma: no cover - protocol stub
        ...

    async def send_json(self, payload: dict[str, Any]) -> None:  # pragma: no cover - protocol stub
        ...

    async def close(self) -> None:  # pragma: no cover - protocol stub
        ...


@dataclass
class TranscriptEntry:
    role: Role
    content: str = ""
    item_id: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class CallContext:
    """Per-call parameters rendered into the conversation instructions."""

    name: str
    location: str
    product: str


@dataclass(frozen=True)
class ToolCallRequest:
    name: str
    arguments: str
    call_id: str
    item_id: str | None = None


@dataclass(frozen=True)
class ToolResult:
    output: dict[str, Any]
    is_error: bool = False

    @classmethod
    def error(cls, message: str) -> ToolResult:
        return cls(output={"error": message}, is_error=True)


@dataclass
class Session:
    """The single live call.

    A session is never cleared in place: the coordinator swaps in a fresh
    instance on reset, so a handler holding an old reference can tell it has
    been detached by comparing identity with ``coordinator.session``.
    """

    stream_sid: str | None = None
    call_sid: str | None = None
    telephony_leg: Leg | None = None
    ai_leg: Leg | None = None
    latest_media_timestamp: int = 0
    response_start_timestamp: int | None = None
    last_assistant_item: str | None = None
    transcript: list[TranscriptEntry] = field(default_factory=list)
    termination_reason: str | None = None
    context: CallContext | None = None
    candidate_responses: dict[str, dict[str, Any]] = field(default_factory=dict)
    evaluation: dict[str, Any] | None = None
    metrics: CallMetrics = field(default_factory=CallMetrics)
    closing: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return (
            self.telephony_leg is None
            and self.ai_leg is None
            and self.stream_sid is None
            and self.call_sid is None
            and not self.transcript
        )

    @property
    def telephony_open(self) -> bool:
        return self.telephony_leg is not None and self.telephony_leg.is_open

    @property
    def ai_open(self) -> bool:
        return self.ai_leg is not None and self.ai_leg.is_open

    def reset_timing(self) -> None:
        self.latest_media_timestamp = 0
        self.response_start_timestamp = None
        self.last_assistant_item = None

    def summary(self) -> dict[str, Any]:
        return {
            "stream_sid": self.stream_sid,
            "call_sid": self.call_sid,
            "telephony_open": self.telephony_open,
            "ai_open": self.ai_open,
            "latest_media_timestamp": self.latest_media_timestamp,
            "transcript_entries": len(self.transcript),
            "termination_reason": self.termination_reason,
        }
