"""Game server configuration via environment variables (prefix SONGGAME_)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list
from songgame.logic.models import DEFAULT_ROUND_DURATION, MAX_ROUND_DURATION, MIN_ROUND_DURATION
from songgame.lyrics.provider import DEFAULT_LYRICS_API_URL

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "SONGGAME_"}

    cors_origins: list[str] = ["http://localhost:5173"]
    log_dir: str | None = Field(default=None, min_length=1)

    room_ttl_seconds: int = Field(default=3600, ge=60)  # idle rooms are evicted after an hour
    reaper_interval_seconds: float = Field(default=60, gt=0)
    default_round_duration: int = Field(default=DEFAULT_ROUND_DURATION, ge=MIN_ROUND_DURATION, le=MAX_ROUND_DURATION)

    lyrics_api_url: str = Field(default=DEFAULT_LYRICS_API_URL, min_length=1)
    lyrics_timeout_seconds: float = Field(default=1.5, gt=0, le=30)
    lyrics_max_variants: int = Field(default=3, ge=1, le=4)
    lyrics_cache_ttl_seconds: float = Field(default=600, ge=0)
    lyrics_cache_max_entries: int = Field(default=200, ge=1)
    verify_submissions: bool = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
