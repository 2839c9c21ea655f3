"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Numbered convention: GEMINI_API_KEY_1 .. GEMINI_API_KEY_<MAX_API_KEYS>
API_KEY_PREFIX = "GEMINI_API_KEY_"
MAX_API_KEYS = 5


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Provider credentials (rotation order is the numbering order)
    GEMINI_API_KEY_1: SecretStr = SecretStr("")
    GEMINI_API_KEY_2: SecretStr = SecretStr("")
    GEMINI_API_KEY_3: SecretStr = SecretStr("")
    GEMINI_API_KEY_4: SecretStr = SecretStr("")
    GEMINI_API_KEY_5: SecretStr = SecretStr("")

    # Provider call
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048
    GEMINI_TOP_P: float = 0.8
    GEMINI_TOP_K: int = 10
    PROVIDER_TIMEOUT_SECONDS: float = 60.0
    CHAT_TURN_TIMEOUT_SECONDS: float = 120.0

    # Key pool
    KEY_POOL_RESET_INTERVAL_HOURS: float = 24
    KEY_POOL_ESTIMATED_QUOTA: int = 1500
    KEY_POOL_STORE: Literal["memory", "file", "supabase"] = "file"
    KEY_POOL_STATE_PATH: str = ".websy/key_pool_state.json"
    KEY_POOL_TABLE: str = "ai_key_pool_state"
    KEY_POOL_RECORD_ID: str = "websy_ai_multi_api_state"

    # Supabase (only needed for KEY_POOL_STORE=supabase)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # Background jobs / response shaping
    ENABLE_SCHEDULER: bool = True
    RESPONSE_FORMATTING_ENABLED: bool = True

    # Logging
    LOG_FORMAT: Literal["text", "json"] = "text"
    LOG_LEVEL: str = "INFO"

    @field_validator("SUPABASE_URL")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate that SUPABASE_URL is a valid URL."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("SUPABASE_URL must start with http:// or https://")
        return v.rstrip("/") if v else v

    @field_validator("KEY_POOL_RESET_INTERVAL_HOURS")
    @classmethod
    def validate_reset_interval(cls, v: float) -> float:
        """Reset interval must be positive."""
        if v <= 0:
            raise ValueError("KEY_POOL_RESET_INTERVAL_HOURS must be greater than zero")
        return v

    def api_keys(self) -> list[str]:
        """Return configured provider keys in numbered order.

        Blank entries are skipped, surrounding whitespace is stripped.

        Returns:
            Ordered list of credential secrets (possibly empty).
        """
        keys: list[str] = []
        for number in range(1, MAX_API_KEYS + 1):
            secret: SecretStr = getattr(self, f"{API_KEY_PREFIX}{number}")
            value = secret.get_secret_value().strip()
            if value:
                keys.append(value)
        return keys

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase credentials are present."""
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance with validated configuration.
    """
    return Settings()
