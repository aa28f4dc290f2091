"""Repository for persisting call records."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import get_settings
from db.base import AsyncSessionFactory
from db.models import CallRecord, CallStatus
from relay.session import CallContext

LOGGER = logging.getLogger(__name__)


class CallRepository:
    """Async repository backing the relay's call store."""

    async def _find(self, session: AsyncSession, call_sid: str) -> CallRecord | None:
        result = await session.execute(select(CallRecord).where(CallRecord.call_sid == call_sid))
        return result.scalar_one_or_none()

    async def _get_or_create(self, session: AsyncSession, call_sid: str) -> CallRecord:
        record = await self._find(session, call_sid)
        if record is None:
            record = CallRecord(call_sid=call_sid, status=CallStatus.INITIATED.value, metrics={})
            session.add(record)
        return record

    async def register_call(
        self,
        call_sid: str,
        *,
        candidate_name: str | None = None,
        location: str | None = None,
        product: str | None = None,
    ) -> CallRecord:
        async with AsyncSessionFactory() as session:
            record = await self._get_or_create(session, call_sid)
            record.candidate_name = candidate_name
            record.location = location
            record.product = product
            await session.commit()
            await session.refresh(record)
            return record

    async def get_call(self, call_sid: str) -> CallRecord | None:
        async with AsyncSessionFactory() as session:
            return await self._find(session, call_sid)

    async def get_call_context(self, call_sid: str) -> CallContext | None:
        """Return registered context, or ``None`` when nothing was registered.

        Fields left empty at registration are filled by the caller's
        defaults, so only fully unknown calls return ``None``.
        """

        record = await self.get_call(call_sid)
        if record is None or not any((record.candidate_name, record.location, record.product)):
            return None
        settings = get_settings()
        return CallContext(
            name=record.candidate_name or settings.default_candidate_name,
            location=record.location or settings.default_candidate_location,
            product=record.product or settings.default_candidate_product,
        )

    async def update_status(self, call_sid: str, status: str) -> None:
        status = CallStatus(status).value
        async with AsyncSessionFactory() as session:
            record = await self._get_or_create(session, call_sid)
            record.status = status
            await session.commit()
        LOGGER.info("Call %s status -> %s", call_sid, status)

    async def persist_transcript(
        self,
        call_sid: str,
        transcript: str,
        analysis: str,
        metrics: dict[str, Any],
        termination_reason: str | None = None,
    ) -> None:
        async with AsyncSessionFactory() as session:
            record = await self._get_or_create(session, call_sid)
            record.transcript = transcript
            record.analysis = analysis or None
            record.metrics = dict(metrics)
            record.termination_reason = termination_reason
            record.status = CallStatus.COMPLETED.value
            await session.commit()
        LOGGER.info("Transcript persisted for call %s (%d chars)", call_sid, len(transcript))
