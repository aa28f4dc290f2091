"""OpenAI Realtime leg: configuration, streamed events and tool calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from websockets.exceptions import WebSocketException

from relay import codec
from relay.codec import RealtimeEvent
from relay.collaborators import InstructionsProvider
from relay.errors import FrameDecodeError
from relay.session import Session, ToolCallRequest
from relay.tools import FunctionCallDispatcher, ToolContext
from relay.transcript import fill_if_empty, fold_delta, message_text, open_entry, record_tool_call
from relay.truncation import TruncationController

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import AsyncIterator

    from relay.coordinator import SessionCoordinator

LOGGER = logging.getLogger(__name__)


class AIConnection(Protocol):
    @property
    def is_open(self) -> bool:  # pragma: no cover - protocol stub
        ...

    async def send_json(self, payload: dict[str, Any]) -> None:  # pragma: no cover - protocol stub
        ...

    async def close(self) -> None:  # pragma: no cover - protocol stub
        ...

    def messages(self) -> AsyncIterator[str | bytes]:  # pragma: no cover - protocol stub
        ...


class AIConnector(Protocol):
    async def connect(self) -> AIConnection:  # pragma: no cover - protocol stub
        ...


@dataclass(frozen=True)
class RealtimeSessionConfig:
    voice: str = "sage"
    audio_format: str = "g711_ulaw"
    transcription_model: str = "whisper-1"
    greet_first: bool = True
    connect_timeout: float = 10.0


class AILegHandler:
    """Drive one Realtime connection for the lifetime of a call."""

    def __init__(
        self,
        coordinator: SessionCoordinator,
        *,
        connector: AIConnector,
        dispatcher: FunctionCallDispatcher,
        instructions: InstructionsProvider,
        config: RealtimeSessionConfig | None = None,
        truncation: TruncationController | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._connector = connector
        self._dispatcher = dispatcher
        self._instructions = instructions
        self._config = config or RealtimeSessionConfig()
        self._truncation = truncation or TruncationController()

    async def run(self, session: Session) -> None:
        """Connect, configure and pump events until the AI leg closes."""

        session.metrics.ai_connect_started()
        try:
            connection = await asyncio.wait_for(
                self._connector.connect(), timeout=self._config.connect_timeout
            )
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Realtime connect timed out after %ss; call continues without AI audio",
                self._config.connect_timeout,
            )
            return
        except (OSError, WebSocketException) as exc:
            LOGGER.warning("Realtime connect failed: %s; call continues without AI audio", exc)
            return
        session.metrics.ai_connect_finished()

        if not await self._coordinator.on_ai_opened(session, connection):
            await connection.close()
            return

        try:
            await self.configure(session)
            async for message in connection.messages():
                await self.handle_message(session, message)
        finally:
            if connection.is_open:
                try:
                    await connection.close()
                except Exception:
                    LOGGER.exception("Closing realtime leg failed")
            await self._coordinator.on_ai_closed(connection)

    async def configure(self, session: Session) -> None:
        if not session.ai_open:
            return
        context = session.context or self._coordinator.default_context
        update = codec.session_update(
            instructions=self._instructions(context),
            voice=self._config.voice,
            audio_format=self._config.audio_format,
            transcription_model=self._config.transcription_model,
            tools=self._dispatcher.registry.to_realtime_schema(),
        )
        await session.ai_leg.send_json(update)
        if self._config.greet_first:
            await session.ai_leg.send_json(codec.response_create())

    async def handle_message(self, session: Session, message: str | bytes) -> None:
        try:
            event = codec.decode_realtime_event(message)
        except FrameDecodeError as exc:
            LOGGER.debug("Dropping realtime event: %s", exc)
            return
        if session is not self._coordinator.session:
            return
        await self.handle_event(session, event)

    async def handle_event(self, session: Session, event: RealtimeEvent) -> None:
        event_type = event.type

        if event_type == "input_audio_buffer.speech_started":
            await self._truncation.truncate(session)
            open_entry(session.transcript, item_id=event.item_id, role="user")
            session.metrics.user_speech_started(event.item_id)

        elif event_type == "response.audio.delta":
            await self._relay_audio(session, event)

        elif event_type == "conversation.item.input_audio_transcription.completed":
            transcript = str(event.data.get("transcript") or "")
            fold_delta(session.transcript, item_id=event.item_id, role="user", delta=transcript)
            session.metrics.user_speech_finished(event.item_id, transcript)

        elif event_type == "conversation.item.created":
            item = event.item
            if item.get("type") == "message" and item.get("role") in ("user", "assistant"):
                entry = open_entry(session.transcript, item_id=item.get("id"), role=item["role"])
                text = message_text(item)
                if text and not entry.content:
                    entry.content = text

        elif event_type == "response.content_part.added":
            part = event.part
            if part is None:
                LOGGER.debug("Dropping content part without an object body")
                return
            text = str(part.get("text") or part.get("transcript") or "")
            fold_delta(session.transcript, item_id=event.item_id, role="assistant", delta=text)

        elif event_type in ("response.audio_transcript.delta", "response.text.delta"):
            delta = str(event.data.get("delta") or "")
            fold_delta(session.transcript, item_id=event.item_id, role="assistant", delta=delta)

        elif event_type == "response.output_item.done":
            await self._on_output_item_done(session, event.item)

        elif event_type == "error":
            LOGGER.warning("Realtime error event: %s", event.data.get("error"))

    async def _relay_audio(self, session: Session, event: RealtimeEvent) -> None:
        if not session.telephony_open or not session.stream_sid:
            return
        item_id = event.item_id
        new_utterance = item_id is not None and item_id != session.last_assistant_item
        if session.response_start_timestamp is None or new_utterance:
            session.response_start_timestamp = session.latest_media_timestamp
            session.metrics.ai_response_started(item_id)
        if item_id:
            session.last_assistant_item = item_id

        await session.telephony_leg.send_json(
            codec.media_frame(session.stream_sid, str(event.data.get("delta") or ""))
        )
        await session.telephony_leg.send_json(codec.mark_frame(session.stream_sid))
        session.metrics.media_frames_out += 1

    async def _on_output_item_done(self, session: Session, item: dict[str, Any]) -> None:
        item_type = item.get("type")
        if item_type == "message":
            text = message_text(item)
            role = item.get("role") if item.get("role") in ("user", "assistant") else "assistant"
            if text:
                fill_if_empty(session.transcript, item_id=item.get("id"), role=role, content=text)
            session.metrics.ai_response_finished(item.get("id"), len(text))
            return

        if item_type != "function_call":
            return

        request = ToolCallRequest(
            name=str(item.get("name") or ""),
            arguments=str(item.get("arguments") or ""),
            call_id=str(item.get("call_id") or ""),
            item_id=item.get("id"),
        )
        record_tool_call(
            session.transcript,
            name=request.name,
            arguments=request.arguments,
            item_id=request.item_id,
        )
        result = await self._dispatcher.dispatch(
            request,
            ToolContext(session=session, terminate=self._coordinator.terminate),
        )
        if session is not self._coordinator.session or not session.ai_open:
            LOGGER.debug("AI leg gone; dropping result of %s", request.name)
            return
        await session.ai_leg.send_json(codec.function_call_output(request.call_id, result.output))
        await session.ai_leg.send_json(codec.response_create())
