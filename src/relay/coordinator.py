"""Session ownership, teardown and termination for the single live call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

from relay import codec
from relay.ai_leg import AIConnector, AILegHandler, RealtimeSessionConfig
from relay.collaborators import CallControl, CallEventNotifier, CallStore, InstructionsProvider, TranscriptAnalyzer
from relay.errors import ProviderNotConfiguredError
from relay.session import CallContext, Leg, Session
from relay.telephony_leg import TelephonyLegHandler
from relay.tools import FunctionCallDispatcher, ToolRegistry, build_default_registry
from relay.transcript import add_note, render_transcript
from relay.truncation import TruncationController

LOGGER = logging.getLogger(__name__)

STATUS_CONNECTED = "CONNECTED"


@dataclass(frozen=True)
class FinalizedCall:
    call_sid: str
    transcript: str
    metrics: dict[str, Any]
    termination_reason: str | None


class SessionCoordinator:
    """Owns the one in-flight :class:`Session` and both of its legs.

    Lifecycle transitions (a telephony socket taking over the session,
    teardown, AI close) are serialized by one lock, so a new call only owns
    the session once the previous call's teardown has finished. Frame
    handling itself never takes the lock.
    """

    def __init__(
        self,
        *,
        connector: AIConnector,
        instructions: InstructionsProvider,
        call_control: CallControl | None = None,
        store: CallStore | None = None,
        analyzer: TranscriptAnalyzer | None = None,
        notifier: CallEventNotifier | None = None,
        registry: ToolRegistry | None = None,
        realtime_config: RealtimeSessionConfig | None = None,
        default_context: CallContext | None = None,
        record_calls: bool = False,
    ) -> None:
        self.session = Session()
        self.default_context = default_context or CallContext(
            name="Candidate", location="Mumbai", product="Insurance"
        )
        self._call_control = call_control
        self._store = store
        self._analyzer = analyzer
        self._notifier = notifier
        self._record_calls = record_calls
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

        self.dispatcher = FunctionCallDispatcher(registry or build_default_registry())
        self.truncation = TruncationController()
        self.telephony = TelephonyLegHandler(self)
        self.ai = AILegHandler(
            self,
            connector=connector,
            dispatcher=self.dispatcher,
            instructions=instructions,
            config=realtime_config,
            truncation=self.truncation,
        )

    # Telephony leg

    async def on_telephony_open(self, leg: Leg) -> Session:
        async with self._lock:
            previous = self.session
            if not previous.is_empty:
                LOGGER.info("New telephony connection supersedes call %s", previous.call_sid)
                if not previous.closing:
                    previous.closing = True
                    await self._teardown(previous, note="Call superseded by a new connection")
            self.session.telephony_leg = leg
            return self.session

    async def on_telephony_closed(self, leg: Leg, reason: str | None = None) -> None:
        """Handle the telephony socket going away.

        Notifications from a socket that no longer belongs to the live
        session are ignored.
        """

        if leg is not self.session.telephony_leg:
            return
        await self.terminate(reason, notify_provider=False)

    async def on_call_started(self, session: Session) -> None:
        call_sid = session.call_sid
        session.context = self.default_context
        if call_sid and self._store is not None:
            try:
                context = await self._store.get_call_context(call_sid)
            except Exception:
                LOGGER.exception("Call context lookup failed for %s", call_sid)
                context = None
            if context is not None:
                session.context = context
            self._spawn(self._store.update_status(call_sid, STATUS_CONNECTED), "status update")

        if call_sid and self._record_calls and self._call_control is not None:
            self._spawn(self._call_control.start_recording(call_sid), "call recording")

        if session.ai_leg is None:
            self._spawn(self.ai.run(session), "realtime leg")

    # AI leg

    async def on_ai_opened(self, session: Session, leg: Leg) -> bool:
        """Attach a freshly connected AI leg; refuse it if the call has moved on."""

        if session is not self.session or session.closing or not session.telephony_open:
            LOGGER.info("Discarding realtime connection for a call that already ended")
            return False
        if session.ai_open:
            return False
        session.ai_leg = leg
        LOGGER.info("Realtime leg open for call %s", session.call_sid)
        return True

    async def on_ai_closed(self, leg: Leg) -> None:
        async with self._lock:
            session = self.session
            if leg is not session.ai_leg:
                return
            session.ai_leg = None
            session.response_start_timestamp = None
            session.last_assistant_item = None
            LOGGER.info("Realtime leg closed for call %s", session.call_sid)
            if session.telephony_leg is None and not session.closing:
                self.session = Session()

    # Termination

    async def terminate(self, reason: str | None, *, notify_provider: bool = True) -> bool:
        """End the live call; safe to call any number of times.

        Records ``reason``, makes one best-effort request to the provider to
        hang up, then closes both legs and finalizes the transcript. Returns
        ``False`` when there was nothing left to terminate.
        """

        async with self._lock:
            session = self.session
            if session.is_empty or session.closing:
                return False
            session.closing = True
            if reason:
                session.termination_reason = reason

            if notify_provider and session.call_sid and self._call_control is not None:
                self._spawn(self._notify_provider(session.call_sid), "provider hangup")

            note = f"Call disconnected: {reason}" if reason else "Call ended"
            await self._teardown(session, note=note)
            return True

    async def hang_up(self, call_sid: str | None = None, *, reason: str = "Call ended via API") -> bool:
        """End calls on request from outside the relay.

        The live session is always torn down through :meth:`terminate`. When
        ``call_sid`` names a different call, the provider is also asked to
        hang that one up. Returns ``True`` if a live session was terminated.
        """

        live_sid = self.session.call_sid
        terminated = await self.terminate(reason)
        if not call_sid or call_sid == live_sid:
            return terminated

        if self._call_control is None:
            raise ProviderNotConfiguredError("No call control is configured")
        await self._call_control.end_call(call_sid)
        return terminated

    async def _notify_provider(self, call_sid: str) -> None:
        try:
            await self._call_control.end_call(call_sid)
        except Exception as exc:
            LOGGER.warning("Provider hangup for %s failed: %s", call_sid, exc)
        else:
            LOGGER.info("Provider hangup requested for %s", call_sid)

    async def _teardown(self, session: Session, *, note: str) -> None:
        try:
            add_note(session.transcript, note)

            if session.ai_leg is not None:
                try:
                    await session.ai_leg.close()
                except Exception:
                    LOGGER.exception("Closing realtime leg failed")

            if session.telephony_leg is not None:
                try:
                    if session.telephony_leg.is_open and session.stream_sid:
                        await session.telephony_leg.send_json(codec.close_frame(session.stream_sid))
                    await session.telephony_leg.close()
                except Exception:
                    LOGGER.exception("Closing telephony leg failed")

            if session.call_sid:
                finalized = FinalizedCall(
                    call_sid=session.call_sid,
                    transcript=render_transcript(session.transcript),
                    metrics=self._metrics_payload(session),
                    termination_reason=session.termination_reason,
                )
                self._spawn(self._finalize(finalized), "finalize call")
        finally:
            if session is self.session:
                self.session = Session()
            LOGGER.info("Session for call %s reset", session.call_sid)

    @staticmethod
    def _metrics_payload(session: Session) -> dict[str, Any]:
        payload = session.metrics.summary()
        payload["candidate_responses"] = dict(session.candidate_responses)
        if session.evaluation is not None:
            payload["evaluation"] = dict(session.evaluation)
        return payload

    async def _finalize(self, call: FinalizedCall) -> None:
        analysis = ""
        if self._analyzer is not None and call.transcript:
            try:
                analysis = await self._analyzer.analyze(call.transcript)
            except Exception:
                LOGGER.exception("Transcript analysis failed for %s", call.call_sid)

        if self._store is not None:
            try:
                await self._store.persist_transcript(
                    call.call_sid,
                    call.transcript,
                    analysis,
                    call.metrics,
                    call.termination_reason,
                )
            except Exception:
                LOGGER.exception("Persisting transcript failed for %s", call.call_sid)

        if self._notifier is not None:
            try:
                await self._notifier.call_ended(call.call_sid, termination_reason=call.termination_reason)
            except Exception as exc:
                LOGGER.warning("Call-ended notification for %s failed: %s", call.call_sid, exc)

    # Background work

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Background task %r failed", name)

    async def drain(self) -> None:
        """Wait for background work (including work it spawns) to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
