"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "ckam-messenger"

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    API_PREFIX: str = "/api"
    # The bundled browser client calls /login, /register, ... without the prefix.
    LEGACY_ROUTES_ENABLED: bool = True

    # Backing file for the account store (whole collection as one JSON document)
    ACCOUNTS_FILE: str = "accounts.json"

    BCRYPT_ROUNDS: int = 10

    ONLINE_WINDOW_MINUTES: int = 5
    SEARCH_ALL_LIMIT: int = 50
    SEARCH_RESULT_LIMIT: int = 20
    # Avatars are data-URIs embedded in the record.
    AVATAR_MAX_LENGTH: int = 10 * 1024 * 1024

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        s = (v or "").strip().rstrip("/")
        if s and not s.startswith("/"):
            raise ValueError("API_PREFIX must start with '/' (e.g. /api)")
        return s

    @field_validator("ACCOUNTS_FILE")
    @classmethod
    def validate_accounts_file(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("ACCOUNTS_FILE must be set and non-empty")
        return v.strip()

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("ONLINE_WINDOW_MINUTES")
    @classmethod
    def validate_online_window(cls, v: int) -> int:
        if v < 1 or v > 1440:
            raise ValueError(
                "ONLINE_WINDOW_MINUTES must be between 1 and 1440 (1 min to 1 day)"
            )
        return v

    @field_validator("SEARCH_ALL_LIMIT", "SEARCH_RESULT_LIMIT")
    @classmethod
    def validate_search_limit(cls, v: int) -> int:
        if v < 1 or v > 1000:
            raise ValueError("Search limits must be between 1 and 1000")
        return v

    @field_validator("AVATAR_MAX_LENGTH")
    @classmethod
    def validate_avatar_max_length(cls, v: int) -> int:
        if v < 1024:
            raise ValueError("AVATAR_MAX_LENGTH must be at least 1024")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
