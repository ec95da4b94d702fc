"""Client configuration, read from MATCHCLIENT_* environment variables (optionally via a .env file)."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from matchclient.core.exceptions import ConfigurationError

ENV_PREFIX = "MATCHCLIENT_"


class ClientSettings(BaseModel):
    api_base: str = "http://localhost:8080/api"
    token_db_url: str = "sqlite:///matchclient.db"
    oracle: str = "python-chess"

    # Poll scheduler cadence (seconds)
    fast_tick_s: float = 0.1
    medium_tick_s: float = 1.0
    slow_tick_s: float = 1.5
    watchdog_tick_s: float = 0.1
    watchdog_cooldown_s: float = 1.5

    request_timeout_s: float = 10.0
    log_level: str = "INFO"

    @field_validator("api_base")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"api_base must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator(
        *[
            "fast_tick_s",
            "medium_tick_s",
            "slow_tick_s",
            "watchdog_tick_s",
            "watchdog_cooldown_s",
            "request_timeout_s",
        ]
    )
    @classmethod
    def must_be_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        return value.upper()


def load_settings(env_file: Optional[Path] = None) -> ClientSettings:
    """Build settings from the environment. Unset variables keep their defaults."""
    load_dotenv(env_file)

    raw = {
        name: os.environ[ENV_PREFIX + name.upper()]
        for name in ClientSettings.model_fields
        if ENV_PREFIX + name.upper() in os.environ
    }
    try:
        return ClientSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid client settings: {exc}") from exc
