"""Per-call conversation timing metrics."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SpeechEvent:
    item_id: str | None
    start_ms: int
    end_ms: int | None = None
    content_length: int = 0

    @property
    def duration_ms(self) -> int | None:
        if self.end_ms is None:
            return None
        return self.end_ms - self.start_ms


@dataclass
class CallMetrics:
    """Wall-clock metrics collected while a call is relayed.

    Timestamps are epoch milliseconds taken from the local clock, independent
    of the media timestamps the relay uses for truncation.
    """

    call_start_ms: int = field(default_factory=_now_ms)
    ai_connect_started_ms: int | None = None
    ai_connect_finished_ms: int | None = None
    user_speech: list[SpeechEvent] = field(default_factory=list)
    ai_responses: list[SpeechEvent] = field(default_factory=list)
    media_frames_in: int = 0
    media_frames_out: int = 0
    marks_acknowledged: int = 0
    truncations: int = 0

    def ai_connect_started(self) -> None:
        self.ai_connect_started_ms = _now_ms()

    def ai_connect_finished(self) -> None:
        self.ai_connect_finished_ms = _now_ms()

    @property
    def ai_connect_latency_ms(self) -> int | None:
        if self.ai_connect_started_ms is None or self.ai_connect_finished_ms is None:
            return None
        return self.ai_connect_finished_ms - self.ai_connect_started_ms

    def user_speech_started(self, item_id: str | None) -> None:
        self.user_speech.append(SpeechEvent(item_id=item_id, start_ms=_now_ms()))

    def user_speech_finished(self, item_id: str | None, transcript: str) -> None:
        for event in reversed(self.user_speech):
            if event.item_id == item_id and event.end_ms is None:
                event.end_ms = _now_ms()
                event.content_length = len(transcript)
                return

    def ai_response_started(self, item_id: str | None) -> None:
        if self.ai_responses and self.ai_responses[-1].item_id == item_id:
            return
        self._close_open_response()
        self.ai_responses.append(SpeechEvent(item_id=item_id, start_ms=_now_ms()))

    def ai_response_finished(self, item_id: str | None, content_length: int = 0) -> None:
        for event in reversed(self.ai_responses):
            if event.item_id == item_id:
                if event.end_ms is None:
                    event.end_ms = _now_ms()
                event.content_length = max(event.content_length, content_length)
                return

    def _close_open_response(self) -> None:
        if self.ai_responses and self.ai_responses[-1].end_ms is None:
            self.ai_responses[-1].end_ms = _now_ms()

    def _response_latencies(self) -> list[int]:
        # Latency is measured from the end of a user turn to the next AI response start.
        latencies: list[int] = []
        for speech in self.user_speech:
            if speech.end_ms is None:
                continue
            following = [r.start_ms for r in self.ai_responses if r.start_ms >= speech.end_ms]
            if following:
                latencies.append(min(following) - speech.end_ms)
        return latencies

    def summary(self) -> dict[str, Any]:
        self._close_open_response()
        end_ms = _now_ms()
        user_durations = [e.duration_ms for e in self.user_speech if e.duration_ms is not None]
        ai_durations = [e.duration_ms for e in self.ai_responses if e.duration_ms is not None]
        latencies = self._response_latencies()

        def _avg(values: list[int]) -> float | None:
            return round(sum(values) / len(values), 1) if values else None

        return {
            "total_conversation_ms": end_ms - self.call_start_ms,
            "ai_connect_latency_ms": self.ai_connect_latency_ms,
            "total_turns": len(self.user_speech) + len(self.ai_responses),
            "user_turns": len(self.user_speech),
            "ai_turns": len(self.ai_responses),
            "total_user_speech_ms": sum(user_durations),
            "total_ai_response_ms": sum(ai_durations),
            "average_user_speech_ms": _avg(user_durations),
            "average_ai_response_ms": _avg(ai_durations),
            "average_ai_response_latency_ms": _avg(latencies),
            "media_frames_in": self.media_frames_in,
            "media_frames_out": self.media_frames_out,
            "marks_acknowledged": self.marks_acknowledged,
            "truncations": self.truncations,
        }
