"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
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

    # Web server for webhooks and status callbacks
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, description="Local TCP port; the ngrok tunnel's port wins when discovered.")
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    ngrok_api_url: str = Field(
        default="http://127.0.0.1:4040/api/tunnels",
        description="Local ngrok agent API, queried when PUBLIC_BASE_URL is not set.",
    )

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_api_key: str | None = Field(default=None)
    twilio_api_secret: str | None = Field(default=None)
    twilio_phone_number: str | None = Field(
        default=None,
        description="Twilio number whose voice URL is pointed at the inbound webhook on startup.",
    )
    twilio_from_number: str | None = Field(default=None, description="Default caller id, E.164, e.g. +4144...")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
