"""Application configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from .env and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openai_api_key: str = ""
    openai_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_BASE_URL", "OPENAI_PROXY_URL"),
    )
    openai_model: str = "gpt-4.1"
    temperature: float = 0.7
    max_tokens: int = 2000
    intent_temperature: float = 0.3
    intent_max_tokens: int = 200
    explain_temperature: float = 0.7
    explain_max_tokens: int = 1000
    request_timeout: float = 30.0  # seconds, transport only
    mermaid_cli_path: str = "mmdc"
    mermaid_renderer_image: str = "minlag/mermaid-cli"
    use_docker_renderer: bool = True
    log_level: str = "INFO"


settings = Settings()
