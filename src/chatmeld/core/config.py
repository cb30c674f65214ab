"""Application configuration using Pydantic Settings.

Environment variables are loaded with the CHATMELD_ prefix (and from a
local ``.env`` file when present). These are process-level knobs: provider
endpoints, logging, conductor timings. The per-user runtime settings that
the human edits while chatting (auto-advance, context size, API keys) live
in ``chatmeld.stores.settings_store``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    service_name: str = "chatmeld"
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Provider endpoints
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible chat completions base URL"
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini generateContent base URL"
    )
    llm_timeout_seconds: float = Field(default=120.0, gt=0, description="LLM request timeout")

    # Optional credentials used to seed the runtime settings store
    openai_api_key: Optional[SecretStr] = Field(default=None, description="OpenAI API key")
    google_api_key: Optional[SecretStr] = Field(default=None, description="Google API key")

    # Conductor pacing
    next_speaker_delay_ms: int = Field(
        default=3000,
        ge=0,
        description="Quiet period after a change before a turn is attempted"
    )
    typing_cooldown_ms: int = Field(
        default=3000,
        ge=0,
        description="Cooldown after the user stops typing before a turn restarts"
    )
    reset_cooldown_on_typing: bool = Field(
        default=True,
        description="Restart the typing cooldown on every keystroke"
    )

    # Console runner
    settings_path: str = Field(
        default="data/settings.json",
        description="JSON file holding the runtime chat settings"
    )

    model_config = SettingsConfigDict(
        env_prefix="CHATMELD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()
