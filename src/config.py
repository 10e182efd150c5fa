"""
Quicktask — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_STT_PROVIDERS = ("http", "whisper", "disabled")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Speech-to-text: "http" (STT proxy) | "whisper" (OpenAI) | "disabled"
    STT_PROVIDER: str = "disabled"
    STT_BACKEND_URL: str = "http://10.0.2.2:3000/api/stt/google"
    STT_API_KEY: str = ""            # sent as x-stt-key when set
    OPENAI_API_KEY: str = ""         # only needed when STT_PROVIDER=whisper
    TRANSCRIPTION_TIMEOUT_SECONDS: float = 30.0

    # Temporal extraction
    PARSER_LANGUAGES: list[str] = ["en"]
    TIMEZONE: str = "UTC"

    # Display strings for reminders and voice-created tasks
    REMINDER_TITLE: str = "Task reminder"
    VOICE_TASK_PLACEHOLDER: str = "voice task"

    @field_validator("STT_PROVIDER", mode="before")
    @classmethod
    def parse_provider(cls, v: str) -> str:
        return (v or "disabled").strip().lower()

    @field_validator("PARSER_LANGUAGES", mode="before")
    @classmethod
    def parse_languages(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [lang.strip() for lang in v.split(",") if lang.strip()]
        return ["en"]

    @field_validator("TRANSCRIPTION_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        return float(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating the STT provider."""
    provider = os.getenv("STT_PROVIDER", "disabled")

    if provider.strip().lower() not in _STT_PROVIDERS:
        print(
            f"ERROR: STT_PROVIDER must be one of {', '.join(_STT_PROVIDERS)}, got {provider!r}",
            file=sys.stderr,
        )
        sys.exit(1)

    return Settings(
        STT_PROVIDER=provider,
        STT_BACKEND_URL=os.getenv("STT_BACKEND_URL", "http://10.0.2.2:3000/api/stt/google"),
        STT_API_KEY=os.getenv("STT_API_KEY", ""),
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
        TRANSCRIPTION_TIMEOUT_SECONDS=os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "30"),
        PARSER_LANGUAGES=os.getenv("PARSER_LANGUAGES", "en"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        REMINDER_TITLE=os.getenv("REMINDER_TITLE", "Task reminder"),
        VOICE_TASK_PLACEHOLDER=os.getenv("VOICE_TASK_PLACEHOLDER", "voice task"),
    )


# Singleton — imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
