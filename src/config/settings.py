"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/calls.db",
        description="SQLAlchemy connection string.",
    )
    auto_create_db_schema: bool = Field(
        default=True,
        description="If true, creates tables automatically on startup (useful for local/dev).",
    )

    # OpenAI Realtime (AI leg)
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-12-17")
    realtime_voice: str = Field(default="sage")
    realtime_transcription_model: str = Field(default="whisper-1")
    realtime_audio_format: str = Field(
        default="g711_ulaw",
        description="Audio format for both directions; must match the Twilio stream encoding.",
    )
    ai_connect_timeout_seconds: float = Field(default=10.0, gt=0)
    ai_greets_first: bool = Field(
        default=True,
        description="Ask the model for an opening response as soon as the session is configured.",
    )

    # Post-call analysis
    analysis_enabled: bool = Field(default=False)
    analysis_model: str = Field(default="gpt-4o-mini")

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    twilio_record_calls: bool = Field(default=False)

    # Call-ended notifications
    call_events_webhook_url: str | None = Field(
        default=None,
        description="Optional endpoint notified when a call is finalized.",
    )
    call_events_api_key: str | None = Field(default=None)

    # Call context fallbacks used when no record exists for a call
    default_candidate_name: str = Field(default="Candidate")
    default_candidate_location: str = Field(default="Mumbai")
    default_candidate_product: str = Field(default="Insurance")
    instructions_template: str = Field(default="interview_instructions.txt")

    data_dir: Path = Field(default=Path("./data"))

    @field_validator("data_dir")
    @classmethod
    def ensure_data_dir(cls, value: Path) -> Path:
        value.mkdir(parents=True, exist_ok=True)
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
