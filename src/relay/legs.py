"""Connection wrappers for the two legs of a relayed call."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from relay import codec

LOGGER = logging.getLogger(__name__)


class TelephonyConnection:
    """Server side of the Twilio Media Streams websocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self.is_open:
            return
        try:
            await self._ws.send_text(codec.encode(payload))
        except (RuntimeError, WebSocketDisconnect) as exc:
            LOGGER.debug("Dropping telephony frame, socket gone: %s", exc)
            self._closed = True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._ws.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self._ws.close()
        except RuntimeError as exc:
            LOGGER.debug("Telephony socket already closed: %s", exc)

    def mark_closed(self) -> None:
        self._closed = True


class RealtimeConnection:
    """Client side of the OpenAI Realtime websocket."""

    def __init__(self, websocket: ClientConnection) -> None:
        self._ws = websocket

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self.is_open:
            return
        try:
            await self._ws.send(codec.encode(payload))
        except ConnectionClosed as exc:
            LOGGER.debug("Dropping realtime event, socket gone: %s", exc)

    async def close(self) -> None:
        await self._ws.close()

    async def messages(self) -> AsyncIterator[str | bytes]:
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosed as exc:
            LOGGER.info("Realtime socket closed: %s", exc)


class RealtimeConnector:
    """Open authenticated connections to the Realtime endpoint."""

    def __init__(self, *, url: str, model: str, api_key: str | None) -> None:
        self._url = url
        self._model = model
        self._api_key = api_key

    @property
    def endpoint(self) -> str:
        return f"{self._url}?model={self._model}"

    async def connect(self) -> RealtimeConnection:
        if not self._api_key:
            raise ConnectionRefusedError("OPENAI_API_KEY is not configured")
        LOGGER.info("Connecting to OpenAI Realtime with model %s", self._model)
        websocket = await connect(
            self.endpoint,
            additional_headers={
                "Authorization": f"Bearer {self._api_key}",
                "OpenAI-Beta": "realtime=v1",
            },
            ping_interval=20,
            ping_timeout=20,
            max_size=None,
        )
        return RealtimeConnection(websocket)
