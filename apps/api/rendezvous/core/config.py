"""Application configuration for the signaling relay and room clients."""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # 0 disables the admission limit.
    room_capacity: int = Field(default=2, ge=0)

    ice_servers: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["stun:openrelay.metered.ca:80"])
    ice_username: str = Field(default="")
    ice_credential: str = Field(default="")

    signaling_url: str = Field(default="ws://localhost:8000/api/signaling")

    media_audio_device: str = Field(default="")
    media_video_device: str = Field(default="")
    media_format: str = Field(default="")
    media_video_width: int = Field(default=500, ge=1)
    media_video_height: int = Field(default=500, ge=1)

    @field_validator("ice_servers", "cors_allow_origins", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        """Allow comma-separated env values for list settings."""

        if isinstance(value, str):
            parts = [item.strip() for item in value.split(",") if item.strip()]
            return parts
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
