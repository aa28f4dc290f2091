"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache

from config.settings import get_settings
from db.repository import CallRepository
from integrations.call_analysis import build_transcript_analyzer
from integrations.call_events import build_call_events_webhook
from integrations.twilio_client import TwilioCallControl
from prompts.loader import build_instructions_provider
from relay.ai_leg import RealtimeSessionConfig
from relay.coordinator import SessionCoordinator
from relay.legs import RealtimeConnector
from relay.session import CallContext


@lru_cache(maxsize=1)
def _coordinator_factory() -> SessionCoordinator:
    settings = get_settings()
    return SessionCoordinator(
        connector=RealtimeConnector(
            url=settings.openai_realtime_url,
            model=settings.openai_realtime_model,
            api_key=settings.openai_api_key,
        ),
        instructions=build_instructions_provider(settings.instructions_template),
        call_control=TwilioCallControl(),
        store=get_repository(),
        analyzer=build_transcript_analyzer(),
        notifier=build_call_events_webhook(),
        realtime_config=RealtimeSessionConfig(
            voice=settings.realtime_voice,
            audio_format=settings.realtime_audio_format,
            transcription_model=settings.realtime_transcription_model,
            greet_first=settings.ai_greets_first,
            connect_timeout=settings.ai_connect_timeout_seconds,
        ),
        default_context=CallContext(
            name=settings.default_candidate_name,
            location=settings.default_candidate_location,
            product=settings.default_candidate_product,
        ),
        record_calls=settings.twilio_record_calls,
    )


def get_coordinator() -> SessionCoordinator:
    return _coordinator_factory()


@lru_cache(maxsize=1)
def get_repository() -> CallRepository:
    return CallRepository()
