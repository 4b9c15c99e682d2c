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
        default="sqlite+aiosqlite:///./data/patient_line.db",
        description="SQLAlchemy connection string.",
    )

    # Migrations / schema
    auto_create_db_schema: bool = Field(
        default=True,
        description="If true, creates tables automatically on startup (useful for local/dev).",
    )
    seed_sample_data: bool = Field(
        default=False,
        description="If true, inserts the sample patients on startup.",
    )

    # OpenAI Realtime
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-10-01")
    openai_voice: str = Field(default="alloy")
    openai_temperature: float = Field(default=0.8, ge=0.6, le=1.2)
    openai_transcription_model: str = Field(default="whisper-1")

    # Twilio (Voice)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    twilio_auth_token: str | None = Field(default=None)
    twilio_validate_signatures: bool = Field(
        default=False,
        description="If true, rejects webhooks without a valid X-Twilio-Signature header.",
    )

    # Keypad authentication
    max_auth_attempts: int = Field(default=3, ge=1)
    auth_attempt_max_entries: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on tracked identifiers; oldest entries are evicted first.",
    )

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
