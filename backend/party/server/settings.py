"""Party server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class PartyServerSettings(BaseSettings):
    model_config = {"env_prefix": "PARTY_"}

    max_rooms: int = Field(default=500, ge=1)
    log_dir: str = Field(default="backend/logs/party", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]
    default_total_rounds: int = Field(default=5, ge=1, le=20)
    room_id_attempts: int = Field(default=100, ge=1)
    # 0 keeps rooms with nobody connected forever
    empty_room_ttl_seconds: float = Field(default=600.0, ge=0)

    judge_timeout_seconds: float = Field(default=8.0, gt=0)
    judge_api_url: str = Field(default="https://api.openai.com/v1", min_length=1)
    # empty key runs the server with the offline judge
    judge_api_key: str = ""
    judge_model: str = Field(default="gpt-4o-mini", min_length=1)
    topics_file: str = Field(default="backend/config/topics.yaml", min_length=1)

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
