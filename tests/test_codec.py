from __future__ import annotations

import json

import pytest

from relay import codec
from relay.codec import CloseEvent, MarkEvent, MediaEvent, StartEvent, StopEvent
from relay.errors import FrameDecodeError


def test_decode_start_frame_reads_stream_and_call_ids():
    event = codec.decode_telephony_frame(
        json.dumps(
            {
                "event": "start",
                "start": {"streamSid": "MZ1", "callSid": "CA1", "customParameters": {"lang": "en"}},
            }
        )
    )

    assert isinstance(event, StartEvent)
    assert event.stream_sid == "MZ1"
    assert event.call_sid == "CA1"
    assert event.custom_parameters == {"lang": "en"}


def test_decode_media_frame_parses_string_timestamp():
    event = codec.decode_telephony_frame(
        json.dumps({"event": "media", "media": {"payload": "AAEC", "timestamp": "250", "track": "inbound"}})
    )

    assert isinstance(event, MediaEvent)
    assert event.payload == "AAEC"
    assert event.timestamp == 250
    assert event.track == "inbound"


@pytest.mark.parametrize(
    "frame, expected",
    [
        ({"event": "mark", "mark": {"name": "responsePart"}}, MarkEvent(name="responsePart")),
        ({"event": "stop", "stop": {"callSid": "CA1"}}, StopEvent()),
        ({"event": "close"}, CloseEvent()),
    ],
)
def test_decode_control_frames(frame, expected):
    assert codec.decode_telephony_frame(json.dumps(frame)) == expected


def test_unknown_telephony_events_decode_to_none():
    assert codec.decode_telephony_frame(json.dumps({"event": "connected", "protocol": "Call"})) is None
    assert codec.decode_telephony_frame(json.dumps({"event": "dtmf", "dtmf": {"digit": "1"}})) is None


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"event": "media", "media": {"timestamp": "5"}}),
        json.dumps({"event": "media", "media": {"payload": "AA", "timestamp": "soon"}}),
        json.dumps({"event": "start", "start": {"callSid": "CA1"}}),
        json.dumps({"event": "start", "start": {"streamSid": "MZ1", "customParameters": "x"}}),
    ],
)
def test_malformed_telephony_frames_raise(text):
    with pytest.raises(FrameDecodeError):
        codec.decode_telephony_frame(text)


def test_decode_realtime_event_exposes_item_id_and_item():
    event = codec.decode_realtime_event(
        json.dumps({"type": "response.output_item.done", "item_id": "it_1", "item": {"type": "message"}})
    )

    assert event.type == "response.output_item.done"
    assert event.item_id == "it_1"
    assert event.item == {"type": "message"}


def test_realtime_content_part_must_be_an_object():
    good = codec.decode_realtime_event(json.dumps({"type": "response.content_part.added", "part": {"text": "Hi"}}))
    bad = codec.decode_realtime_event(json.dumps({"type": "response.content_part.added", "part": "oops"}))

    assert good.part == {"text": "Hi"}
    assert bad.part is None


def test_decode_realtime_event_requires_type():
    with pytest.raises(FrameDecodeError):
        codec.decode_realtime_event(json.dumps({"item_id": "it_1"}))


def test_telephony_outbound_frames():
    assert codec.media_frame("MZ1", "AAEC") == {
        "event": "media",
        "streamSid": "MZ1",
        "media": {"payload": "AAEC"},
    }
    assert codec.mark_frame("MZ1") == {"event": "mark", "streamSid": "MZ1", "mark": {"name": "responsePart"}}
    assert codec.clear_frame("MZ1") == {"event": "clear", "streamSid": "MZ1"}
    assert codec.close_frame("MZ1") == {"event": "close", "streamSid": "MZ1"}


def test_session_update_carries_audio_formats_and_tools():
    tools = [{"type": "function", "name": "disconnect_call", "description": "", "parameters": {"type": "object"}}]

    update = codec.session_update(
        instructions="Be brief.",
        voice="sage",
        audio_format="g711_ulaw",
        transcription_model="whisper-1",
        tools=tools,
    )

    session = update["session"]
    assert update["type"] == "session.update"
    assert session["turn_detection"] == {"type": "server_vad"}
    assert session["input_audio_format"] == session["output_audio_format"] == "g711_ulaw"
    assert session["input_audio_transcription"] == {"model": "whisper-1"}
    assert session["instructions"] == "Be brief."
    assert session["tools"] == tools
    assert session["tool_choice"] == "auto"


def test_session_update_without_tools_omits_tool_choice():
    update = codec.session_update(
        instructions="", voice="alloy", audio_format="g711_ulaw", transcription_model="whisper-1"
    )

    assert "tools" not in update["session"]
    assert "tool_choice" not in update["session"]


def test_function_call_output_encodes_output_as_json_string():
    event = codec.function_call_output("call_1", {"error": "no handler"})

    assert event["type"] == "conversation.item.create"
    assert event["item"]["type"] == "function_call_output"
    assert event["item"]["call_id"] == "call_1"
    assert json.loads(event["item"]["output"]) == {"error": "no handler"}


def test_item_truncate_targets_first_content_part():
    assert codec.item_truncate("it_1", 600) == {
        "type": "conversation.item.truncate",
        "item_id": "it_1",
        "content_index": 0,
        "audio_end_ms": 600,
    }
