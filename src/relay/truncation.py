"""Barge-in handling: cut the AI utterance at the point the caller heard."""

from __future__ import annotations

import logging

from relay import codec
from relay.session import Session

LOGGER = logging.getLogger(__name__)


class TruncationController:
    """Tell both legs where the in-flight utterance was interrupted.

    The realtime model keeps the full generated audio in its conversation
    state; unless it is truncated to what the caller actually heard, later
    turns refer to speech the caller never got.
    """

    async def truncate(self, session: Session) -> int | None:
        """Truncate the in-flight utterance and return the cutoff in ms.

        Returns ``None`` without touching the session when nothing is playing.
        """

        item_id = session.last_assistant_item
        if not item_id:
            return None

        start = session.response_start_timestamp
        if start is None:
            LOGGER.debug("Item %s in flight without a response start; truncating at 0ms", item_id)
            start = session.latest_media_timestamp
        audio_end_ms = max(0, session.latest_media_timestamp - start)

        if session.ai_open:
            await session.ai_leg.send_json(codec.item_truncate(item_id, audio_end_ms))

        if session.telephony_open and session.stream_sid:
            await session.telephony_leg.send_json(codec.clear_frame(session.stream_sid))

        LOGGER.debug("Truncated item %s at %sms", item_id, audio_end_ms)
        session.metrics.truncations += 1
        session.metrics.ai_response_finished(item_id)
        session.last_assistant_item = None
        session.response_start_timestamp = None
        return audio_end_ms
