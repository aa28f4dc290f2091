from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from integrations.call_analysis import OpenAITranscriptAnalyzer
from integrations.call_events import CallEventsWebhook
from integrations.twilio_client import TwilioCallControl
from prompts.loader import build_instructions_provider, load_prompt, render_instructions
from relay.session import CallContext


class FakeTwilioCall:
    def __init__(self, client: FakeTwilioClient, sid: str) -> None:
        self._client = client
        self._sid = sid
        self.recordings = SimpleNamespace(create=self._create_recording)

    def update(self, *, status: str):
        self._client.updates.append((self._sid, status))
        return SimpleNamespace(sid=self._sid, status=status)

    def _create_recording(self):
        self._client.recordings.append(self._sid)
        return SimpleNamespace(sid="RE123")


class FakeTwilioClient:
    def __init__(self) -> None:
        self.updates: list[tuple[str, str]] = []
        self.recordings: list[str] = []

    def calls(self, sid: str) -> FakeTwilioCall:
        return FakeTwilioCall(self, sid)


def test_twilio_call_control_completes_call_and_records():
    twilio = FakeTwilioClient()
    control = TwilioCallControl(client=twilio)

    async def scenario():
        await control.end_call("CA1")
        await control.start_recording("CA2")

    asyncio.run(scenario())

    assert twilio.updates == [("CA1", "completed")]
    assert twilio.recordings == ["CA2"]


def test_call_events_webhook_posts_payload_with_bearer_token():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    webhook = CallEventsWebhook(
        "https://hooks.example.test/calls/",
        "secret",
        transport=httpx.MockTransport(handler),
    )

    asyncio.run(webhook.call_ended("CA1", termination_reason="Interview completed"))

    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == "https://hooks.example.test/calls"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {
        "event": "call.ended",
        "call_sid": "CA1",
        "termination_reason": "Interview completed",
    }


def test_call_events_webhook_raises_on_error_status():
    webhook = CallEventsWebhook(
        "https://hooks.example.test/calls",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(webhook.call_ended("CA1", termination_reason=None))


class FakeCompletions:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content="Proceed: strong field sales background.")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_transcript_analyzer_sends_transcript_to_chat_model():
    completions = FakeCompletions()
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    analyzer = OpenAITranscriptAnalyzer(client, model="gpt-4o-mini", system_prompt="Assess the call.")

    result = asyncio.run(analyzer.analyze("User: Yes\nAssistant: Great"))

    assert result == "Proceed: strong field sales background."
    call = completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["messages"][0] == {"role": "system", "content": "Assess the call."}
    assert call["messages"][1]["content"] == "User: Yes\nAssistant: Great"


def test_transcript_analyzer_skips_empty_transcripts():
    completions = FakeCompletions()
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    analyzer = OpenAITranscriptAnalyzer(client, model="gpt-4o-mini", system_prompt="Assess the call.")

    assert asyncio.run(analyzer.analyze("  \n")) == ""
    assert completions.calls == []


def test_interview_instructions_render_call_context():
    provide = build_instructions_provider("interview_instructions.txt")

    text = provide(CallContext(name="Farah", location="Kolkata", product="Vehicle loans"))

    assert "Name: Farah" in text
    assert "Location: Kolkata" in text
    assert "Vehicle loans" in text
    assert "$candidate_name" not in text
    assert "disconnect_call" in text


def test_render_instructions_leaves_unknown_placeholders():
    context = CallContext(name="A", location="B", product="C")

    assert render_instructions("$candidate_name / $unknown", context) == "A / $unknown"


def test_missing_prompt_file_raises():
    with pytest.raises(RuntimeError, match="Prompt file not found"):
        load_prompt("does_not_exist.txt")
