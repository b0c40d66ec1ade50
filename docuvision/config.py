"""Configuration management for the DocuVision AI gateway."""

import os
from dataclasses import dataclass
from typing import List, Optional
from dotenv import load_dotenv

from docuvision.errors import ConfigurationError

KEY_SLOTS = (
    "GEMINI_API_KEY",
    "GEMINI_API_KEY_2",
    "GEMINI_API_KEY_3",
    "GEMINI_API_KEY_4",
    "GEMINI_API_KEY_5",
    "GOOGLE_API_KEY",
    "GOOGLE_API_KEY_2",
    "GOOGLE_API_KEY_3",
    "GOOGLE_API_KEY_4",
    "GOOGLE_API_KEY_5",
)

MISSING_KEYS_MESSAGE = (
    "No API keys configured. Please set GEMINI_API_KEY or GOOGLE_API_KEY in .env"
)


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    api_keys: List[str]
    port: int = 8000
    host: str = "0.0.0.0"
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_api_version: str = "v1beta"
    gemini_model: str = "gemini-2.5-flash"
    max_key_attempts: int = 3
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    request_timeout_seconds: float = 60.0
    daily_reset: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        self.api_keys = [key.strip() for key in self.api_keys if key and key.strip()]
        if not self.api_keys:
            raise ConfigurationError(MISSING_KEYS_MESSAGE)
        if self.max_key_attempts <= 0:
            raise ConfigurationError("MAX_KEY_ATTEMPTS must be a positive integer")
        if self.max_retries <= 0:
            raise ConfigurationError("MAX_RETRIES must be a positive integer")


def read_key_slots() -> List[str]:
    """Collect the configured keys in slot order, dropping unset slots."""
    keys: List[Optional[str]] = [os.getenv(slot) for slot in KEY_SLOTS]
    return [key.strip() for key in keys if key and key.strip()]


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(use_dotenv: bool = True) -> Config:
    """Load configuration from environment variables.

    Returns:
        Config: Configured application settings

    Raises:
        ConfigurationError: If no API key slot is set
        ValueError: If a numeric setting cannot be parsed
    """
    if use_dotenv:
        load_dotenv()

    return Config(
        api_keys=read_key_slots(),
        port=int(os.getenv("PORT", "8000")),
        host=os.getenv("HOST", "0.0.0.0"),
        gemini_base_url=os.getenv(
            "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com"
        ),
        gemini_api_version=os.getenv("GEMINI_API_VERSION", "v1beta"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        max_key_attempts=int(os.getenv("MAX_KEY_ATTEMPTS", "3")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        retry_base_delay_seconds=float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0")),
        retry_max_delay_seconds=float(os.getenv("RETRY_MAX_DELAY_SECONDS", "30.0")),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60")),
        daily_reset=_as_bool(os.getenv("DAILY_RESET", "true")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
