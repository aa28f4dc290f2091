"""Wire format for both legs.

Twilio Media Streams and the OpenAI Realtime API both exchange one JSON
object per websocket text frame. Decoding turns those frames into small typed
events; encoding builds the outbound frames. Nothing here touches session
state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from relay.errors import FrameDecodeError

MARK_NAME = "responsePart"


@dataclass(slots=True)
class StartEvent:
    stream_sid: str
    call_sid: str | None
    custom_parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class MediaEvent:
    payload: str
    timestamp: int
    track: str | None = None


@dataclass(slots=True)
class MarkEvent:
    name: str | None = None


@dataclass(slots=True)
class StopEvent:
    pass


@dataclass(slots=True)
class CloseEvent:
    pass


TelephonyEvent = Union[StartEvent, MediaEvent, MarkEvent, StopEvent, CloseEvent]


@dataclass(slots=True)
class RealtimeEvent:
    """An inbound OpenAI Realtime server event."""

    type: str
    data: dict[str, Any]

    @property
    def item_id(self) -> str | None:
        value = self.data.get("item_id")
        return str(value) if value else None

    @property
    def item(self) -> dict[str, Any]:
        item = self.data.get("item")
        return item if isinstance(item, dict) else {}

    @property
    def part(self) -> dict[str, Any] | None:
        part = self.data.get("part")
        return part if isinstance(part, dict) else None


def _load_object(text: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FrameDecodeError(f"Frame is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise FrameDecodeError("Frame is not a JSON object.")
    return message


def decode_telephony_frame(text: str | bytes) -> TelephonyEvent | None:
    """Decode a Twilio Media Streams frame.

    Returns ``None`` for event kinds the relay does not act on (``connected``,
    ``dtmf``, ...). Raises ``FrameDecodeError`` for malformed frames.
    """

    message = _load_object(text)
    event = message.get("event")

    if event == "media":
        media = message.get("media")
        if not isinstance(media, dict):
            raise FrameDecodeError("media frame without media body")
        payload = media.get("payload")
        if not isinstance(payload, str):
            raise FrameDecodeError("media frame without payload")
        try:
            timestamp = int(media.get("timestamp", 0))
        except (TypeError, ValueError) as exc:
            raise FrameDecodeError("media frame with non-numeric timestamp") from exc
        return MediaEvent(payload=payload, timestamp=timestamp, track=media.get("track"))

    if event == "start":
        start = message.get("start")
        if not isinstance(start, dict):
            raise FrameDecodeError("start frame without start body")
        stream_sid = start.get("streamSid") or message.get("streamSid")
        if not stream_sid:
            raise FrameDecodeError("start frame without streamSid")
        call_sid = start.get("callSid")
        custom_parameters = start.get("customParameters") or {}
        if not isinstance(custom_parameters, dict):
            raise FrameDecodeError("start frame with non-object customParameters")
        return StartEvent(
            stream_sid=str(stream_sid),
            call_sid=str(call_sid) if call_sid else None,
            custom_parameters=dict(custom_parameters),
        )

    if event == "mark":
        mark = message.get("mark") or {}
        return MarkEvent(name=mark.get("name") if isinstance(mark, dict) else None)

    if event == "stop":
        return StopEvent()

    if event == "close":
        return CloseEvent()

    return None


def decode_realtime_event(text: str | bytes) -> RealtimeEvent:
    message = _load_object(text)
    event_type = message.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise FrameDecodeError("Realtime event without type")
    return RealtimeEvent(type=event_type, data=message)


def encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


# Telephony leg, outbound


def media_frame(stream_sid: str, payload: str) -> dict[str, Any]:
    return {"event": "media", "streamSid": stream_sid, "media": {"payload": payload}}


def mark_frame(stream_sid: str, name: str = MARK_NAME) -> dict[str, Any]:
    return {"event": "mark", "streamSid": stream_sid, "mark": {"name": name}}


def clear_frame(stream_sid: str) -> dict[str, Any]:
    return {"event": "clear", "streamSid": stream_sid}


def close_frame(stream_sid: str) -> dict[str, Any]:
    return {"event": "close", "streamSid": stream_sid}


# AI leg, outbound


def session_update(
    *,
    instructions: str,
    voice: str,
    audio_format: str,
    transcription_model: str,
    tools: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    session: dict[str, Any] = {
        "modalities": ["text", "audio"],
        "turn_detection": {"type": "server_vad"},
        "voice": voice,
        "input_audio_transcription": {"model": transcription_model},
        "input_audio_format": audio_format,
        "output_audio_format": audio_format,
        "instructions": instructions,
    }
    if tools:
        session["tools"] = tools
        session["tool_choice"] = "auto"
    return {"type": "session.update", "session": session}


def audio_append(audio: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": audio}


def item_truncate(item_id: str, audio_end_ms: int, content_index: int = 0) -> dict[str, Any]:
    return {
        "type": "conversation.item.truncate",
        "item_id": item_id,
        "content_index": content_index,
        "audio_end_ms": audio_end_ms,
    }


def function_call_output(call_id: str, output: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "function_call_output",
            "call_id": call_id,
            "output": encode(output),
        },
    }


def response_create() -> dict[str, Any]:
    return {"type": "response.create"}
