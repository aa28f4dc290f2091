from __future__ import annotations

import json

from fakes import make_harness, media_frame, start_frame


def test_twiml_connects_call_to_media_stream(client):
    for method in (client.get, client.post):
        resp = method("/api/twilio/twiml")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/xml")
        assert "<Connect><Stream url=\"wss://relay.example.test/api/twilio/call\" /></Connect>" in resp.text


def test_media_stream_relays_until_stop(client, harness):
    with client.websocket_connect("/api/twilio/call") as ws:
        ws.send_text(start_frame("S1", "C1"))
        ws.send_text(media_frame(100))
        ws.send_text(json.dumps({"event": "stop"}))

        assert ws.receive_json() == {"event": "close", "streamSid": "S1"}

    client.portal.call(harness.coordinator.drain)

    assert harness.coordinator.session.is_empty
    assert harness.connector.attempts == 1
    assert harness.call_control.ended == []
    persisted = harness.store.persisted
    assert [call.call_sid for call in persisted] == ["C1"]
    assert persisted[0].termination_reason is None
    assert "System: Call connected (stream S1)" in persisted[0].transcript


def test_media_stream_disconnect_finalizes_call(client, harness):
    with client.websocket_connect("/api/twilio/call") as ws:
        ws.send_text(start_frame("S2", "C2"))
        ws.send_text(media_frame(40))

    client.portal.call(harness.coordinator.drain)

    assert harness.coordinator.session.is_empty
    assert harness.store.persisted[0].call_sid == "C2"
    assert harness.store.persisted[0].termination_reason == "telephony connection lost"


def test_end_call_for_other_call_asks_provider_to_hang_up(client, harness):
    resp = client.post("/api/twilio/end-call", json={"callSid": "CA999"})

    assert resp.status_code == 200
    assert "<Hangup/>" in resp.text
    assert harness.call_control.ended == ["CA999"]


def test_end_call_without_body_and_no_live_call(client, harness):
    resp = client.post("/api/twilio/end-call")

    assert resp.status_code == 200
    assert "<Hangup/>" in resp.text
    assert harness.call_control.ended == []


def test_end_call_terminates_live_call(client, harness):
    client.portal.call(harness.start_call, "S3", "C3")

    resp = client.post("/api/twilio/end-call", json={"callSid": "C3"})
    client.portal.call(harness.coordinator.drain)

    assert resp.status_code == 200
    assert harness.call_control.ended == ["C3"]
    assert harness.telephony[0].is_open is False
    assert harness.store.persisted[0].termination_reason == "Call ended via API"


def test_end_call_without_provider_maps_to_503(app, client):
    import api.dependencies as deps

    bare = make_harness(with_call_control=False)
    app.dependency_overrides[deps.get_coordinator] = lambda: bare.coordinator

    resp = client.post("/api/twilio/end-call", json={"callSid": "CA1"})

    assert resp.status_code == 503
    assert resp.json()["detail"] == "No call control is configured"
