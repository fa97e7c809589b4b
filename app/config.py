from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Every value has a default so the service boots with no .env present.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 4000

    # Database
    DATABASE_URL: str = "sqlite:///./data.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Auth
    JWT_SECRET: str = "change_this_secret"
    JWT_ALGORITHM: str = "HS256"
    # Unset means tokens never expire
    JWT_EXPIRES_MINUTES: Optional[int] = None
    INVITE_CODE: str = "friends-only-2025"
    BCRYPT_ROUNDS: int = 10

    # Browser client origins
    CORS_ORIGINS: list[str] = ["*"]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
