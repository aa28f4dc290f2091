from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from config.settings import get_settings
from relay.errors import ProviderNotConfiguredError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    public_base_url: str | None


def get_twilio_config() -> TwilioConfig:
    settings = get_settings()
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise ProviderNotConfiguredError("Twilio credentials are not configured")

    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        public_base_url=settings.public_base_url.rstrip("/") if settings.public_base_url else None,
    )


def build_twilio_client():
    from twilio.rest import Client

    cfg = get_twilio_config()
    return Client(cfg.account_sid, cfg.auth_token)


class TwilioCallControl:
    """Provider-side call control through the Twilio REST API.

    The Twilio SDK is synchronous, so each request runs in a worker thread.
    The client is built on first use; a service without Twilio credentials
    still relays calls and only fails when control is actually requested.
    """

    def __init__(self, client=None) -> None:
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = build_twilio_client()
        return self._client

    async def end_call(self, call_sid: str) -> None:
        client = self._get_client()
        await asyncio.to_thread(lambda: client.calls(call_sid).update(status="completed"))
        LOGGER.info("Twilio call %s marked completed", call_sid)

    async def start_recording(self, call_sid: str) -> None:
        client = self._get_client()
        recording = await asyncio.to_thread(lambda: client.calls(call_sid).recordings.create())
        LOGGER.info("Recording %s started for call %s", getattr(recording, "sid", "?"), call_sid)
