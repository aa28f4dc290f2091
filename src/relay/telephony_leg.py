"""Inbound Twilio Media Streams handling."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from relay import codec
from relay.codec import CloseEvent, MarkEvent, MediaEvent, StartEvent, StopEvent
from relay.errors import FrameDecodeError
from relay.session import Leg
from relay.transcript import add_note

if TYPE_CHECKING:  # pragma: no cover
    from relay.coordinator import SessionCoordinator

LOGGER = logging.getLogger(__name__)


class TelephonyLegHandler:
    """Turn Twilio frames into session updates and AI-leg audio."""

    def __init__(self, coordinator: SessionCoordinator) -> None:
        self._coordinator = coordinator

    async def handle_frame(self, leg: Leg, text: str | bytes) -> None:
        """Apply one frame received on ``leg``.

        Frames from a socket that no longer owns the live session are dropped.
        """

        if leg is not self._coordinator.session.telephony_leg:
            LOGGER.debug("Dropping frame from a superseded telephony connection")
            return
        try:
            event = codec.decode_telephony_frame(text)
        except FrameDecodeError as exc:
            LOGGER.debug("Dropping telephony frame: %s", exc)
            return

        if isinstance(event, MediaEvent):
            await self._on_media(event)
        elif isinstance(event, StartEvent):
            await self._on_start(event)
        elif isinstance(event, MarkEvent):
            self._coordinator.session.metrics.marks_acknowledged += 1
        elif isinstance(event, (StopEvent, CloseEvent)):
            LOGGER.info("Telephony stream ended (%s)", type(event).__name__)
            await self._coordinator.terminate(None, notify_provider=False)

    async def _on_start(self, event: StartEvent) -> None:
        session = self._coordinator.session
        session.stream_sid = event.stream_sid
        session.call_sid = event.call_sid
        session.reset_timing()
        add_note(session.transcript, f"Call connected (stream {event.stream_sid})")
        LOGGER.info("Twilio stream started: stream=%s call=%s", event.stream_sid, event.call_sid)
        await self._coordinator.on_call_started(session)

    async def _on_media(self, event: MediaEvent) -> None:
        if event.track and event.track != "inbound":
            return
        session = self._coordinator.session
        # Timestamps never move backwards; the truncation math depends on it.
        session.latest_media_timestamp = max(session.latest_media_timestamp, event.timestamp)
        session.metrics.media_frames_in += 1
        if session.ai_open:
            await session.ai_leg.send_json(codec.audio_append(event.payload))
