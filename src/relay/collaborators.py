"""Interfaces of the services the relay hands work to.

Concrete implementations live in ``integrations`` and ``db``; tests pass
in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from relay.session import CallContext

InstructionsProvider = Callable[[CallContext], str]


class CallControl(Protocol):
    async def start_recording(self, call_sid: str) -> None:
        """Start recording the provider-side call."""

    async def end_call(self, call_sid: str) -> None:
        """Ask the provider to hang up the call."""


class CallStore(Protocol):
    async def get_call_context(self, call_sid: str) -> CallContext | None:
        """Return the parameters registered for the call, if any."""

    async def update_status(self, call_sid: str, status: str) -> None:
        """Record a call lifecycle status."""

    async def persist_transcript(
        self,
        call_sid: str,
        transcript: str,
        analysis: str,
        metrics: dict[str, Any],
        termination_reason: str | None = None,
    ) -> None:
        """Store the finalized transcript of a call."""


class TranscriptAnalyzer(Protocol):
    async def analyze(self, transcript: str) -> str:
        """Return a free-text assessment of a finished call."""


class CallEventNotifier(Protocol):
    async def call_ended(self, call_sid: str, *, termination_reason: str | None) -> None:
        """Notify interested parties that a call was finalized."""
