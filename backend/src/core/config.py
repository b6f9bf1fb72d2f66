"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Secrets that have shipped as fallbacks in the past and must never sign tokens
PLACEHOLDER_SECRETS = frozenset({"supersecretbackup", "changeme", "CHANGE_ME_IN_PRODUCTION"})
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str

    # Identity providers (empty audience = provider rejects every token)
    google_client_id: str = ""
    apple_client_id: str = ""
    google_jwks_url: str = "https://www.googleapis.com/oauth2/v3/certs"
    apple_jwks_url: str = "https://appleid.apple.com/auth/keys"
    provider_timeout_seconds: float = 5.0
    verification_timeout_seconds: float = 10.0
    jwks_cache_ttl_seconds: int = 3600

    # Session tokens
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    session_ttl_days: int = 30

    # Redis (JWKS cache)
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        """Accept a comma-separated string or a list."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, value: str) -> str:
        """Reject missing, short, or placeholder signing secrets."""
        if value in PLACEHOLDER_SECRETS:
            raise ValueError("JWT_SECRET is set to a placeholder value")
        if len(value) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters",
            )
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
