"""Post-call assessment of a finished interview transcript."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from config.settings import get_settings
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)


class OpenAITranscriptAnalyzer:
    """Ask a chat model for a short assessment of the candidate."""

    def __init__(self, client: AsyncOpenAI, *, model: str, system_prompt: str | None = None) -> None:
        self._client = client
        self._model = model
        self._system_prompt = system_prompt or load_prompt("call_analysis.txt")

    async def analyze(self, transcript: str) -> str:
        if not transcript.strip():
            return ""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": transcript},
            ],
            temperature=0.2,
            max_tokens=768,
        )
        return response.choices[0].message.content or ""


def build_transcript_analyzer() -> OpenAITranscriptAnalyzer | None:
    settings = get_settings()
    if not settings.analysis_enabled:
        return None
    if not settings.openai_api_key:
        LOGGER.warning("Transcript analysis enabled but OPENAI_API_KEY is not set; skipping analysis")
        return None
    return OpenAITranscriptAnalyzer(
        AsyncOpenAI(api_key=settings.openai_api_key),
        model=settings.analysis_model,
    )
