"""Configuration settings for the PoopPal backend."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str
    supabase_secret_key: str | None = None  # Backend access (bypasses RLS)
    supabase_publishable_key: str | None = None  # Client/public access
    # Legacy key name, still accepted
    supabase_service_role_key: str | None = None
    # Used to verify access tokens issued by Supabase Auth
    supabase_jwt_secret: str

    # JWT
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Store calls
    request_timeout_seconds: float = 10.0

    # Logs
    undo_window_seconds: float = 5.0
    default_timezone: str = "UTC"

    # Friends
    friend_request_rate: str = "20/minute"

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
