"""Twilio Voice integration.

This module provides:
- TwiML webhook that connects a call to the media stream websocket.
- The media stream websocket itself (the telephony leg of the relay).
- An endpoint to hang up a call.
"""

from __future__ import annotations

import logging
from xml.sax.saxutils import escape

from fastapi import APIRouter, Body, Depends, Request, Response, WebSocket, WebSocketDisconnect

from api.dependencies import get_coordinator
from api.schemas import EndCallRequest
from config.settings import get_settings
from relay.coordinator import SessionCoordinator
from relay.legs import TelephonyConnection

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])

STREAM_PATH = "/api/twilio/call"


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return _to_ws_url(settings.public_base_url.rstrip("/") + STREAM_PATH)
    # Fallback to request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
    return _to_ws_url(str(request.base_url).rstrip("/") + STREAM_PATH)


def _twiml_stream(*, stream_url: str) -> str:
    stream = escape(stream_url, {'"': "&quot;"})
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


def _twiml_hangup() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Hangup/>"
        "</Response>"
    )


@router.api_route("/twiml", methods=["GET", "POST"])
async def twilio_twiml(request: Request) -> Response:
    stream_url = _stream_url(request)
    LOGGER.info("Serving TwiML with stream URL %s", stream_url)
    return _twiml_response(_twiml_stream(stream_url=stream_url))


@router.websocket("/call")
async def twilio_media_stream(
    websocket: WebSocket,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> None:
    await websocket.accept()
    connection = TelephonyConnection(websocket)
    await coordinator.on_telephony_open(connection)
    LOGGER.info("Telephony websocket connected")

    reason: str | None = None
    try:
        # The relay closes the socket itself on stop or termination.
        while connection.is_open:
            message = await websocket.receive_text()
            await coordinator.telephony.handle_frame(connection, message)
    except WebSocketDisconnect as exc:
        connection.mark_closed()
        reason = "telephony connection lost"
        LOGGER.info("Telephony websocket disconnected (code=%s)", exc.code)
    finally:
        await coordinator.on_telephony_closed(connection, reason=reason)


@router.post("/end-call")
async def twilio_end_call(
    payload: EndCallRequest | None = Body(default=None),
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> Response:
    call_sid = payload.call_sid if payload is not None else None
    terminated = await coordinator.hang_up(call_sid)
    LOGGER.info("End-call request for %s (live session terminated: %s)", call_sid or "live call", terminated)
    return _twiml_response(_twiml_hangup())
