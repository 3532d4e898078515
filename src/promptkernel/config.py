"""Application configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")

    openai_base_url: str = Field(alias="OPENAI_BASE_URL", default="https://api.openai.com/v1")
    openai_api_key: str = Field(alias="OPENAI_API_KEY", default="")
    openai_model: str = Field(alias="OPENAI_MODEL", default="gpt-4o-mini")
    openai_timeout_seconds: int = Field(alias="OPENAI_TIMEOUT_SECONDS", default=120)

    tool_max_rounds: int = Field(alias="TOOL_MAX_ROUNDS", default=2, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
