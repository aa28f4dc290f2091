"""Webhook notifying a downstream service that a call was finalized."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


class CallEventsWebhook:
    """Simple HTTP bridge to the service that tracks interview outcomes."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        *,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def call_ended(self, call_sid: str, *, termination_reason: str | None) -> None:
        payload: dict[str, Any] = {
            "event": "call.ended",
            "call_sid": call_sid,
            "termination_reason": termination_reason,
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._endpoint, json=payload, headers=headers)
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Call-ended webhook failed: %s", exc)
            raise


def build_call_events_webhook() -> CallEventsWebhook | None:
    settings = get_settings()
    if not settings.call_events_webhook_url:
        return None
    return CallEventsWebhook(settings.call_events_webhook_url, settings.call_events_api_key)
