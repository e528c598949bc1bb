"""
Configuration management.

Centralized environment variable management and validation.
"""

import tempfile
from typing import Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Environment
    environment: Literal["development", "test", "staging", "production"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # HTTP surface
    frontend_url: str = "*"  # CORS origin
    public_base_url: Optional[str] = None  # Falls back to the request's base URL

    # Filesystem
    video_output_dir: str = "public/videos"
    temp_dir: str = tempfile.gettempdir()

    # Narration provider (Murf-style JSON TTS API)
    murf_api_key: Optional[str] = None
    murf_api_url: str = "https://api.murf.ai/v1/speech/generate"
    default_voice_id: str = "en-US-terrell"

    # Image provider (OpenAI-compatible images endpoint)
    hf_token: Optional[str] = None
    image_api_base_url: str = "https://router.huggingface.co/nebius/v1"
    image_model: str = "black-forest-labs/flux-dev"

    # Timeouts (seconds)
    provider_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 30.0
    encoder_timeout_seconds: float = 120.0

    # Concurrency
    image_concurrency: int = 1  # 1 = strictly sequential image requests
    max_concurrent_runs: int = 4
    max_subscribers_per_session: int = 10
    heartbeat_interval_seconds: float = 30.0

    # Media tooling
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"

    # Optional Redis mirror for progress events
    redis_url: Optional[str] = None

    @field_validator("public_base_url")
    @classmethod
    def validate_public_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate public base URL format."""
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ConfigError("PUBLIC_BASE_URL must be a valid HTTP/HTTPS URL")
        return v.rstrip("/")

    @field_validator("murf_api_url", "image_api_base_url")
    @classmethod
    def validate_provider_url(cls, v: str) -> str:
        """Validate provider endpoint URLs."""
        if not v.startswith(("http://", "https://")):
            raise ConfigError(f"Provider URL must be a valid HTTP/HTTPS URL: {v}")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if not v:
            return None
        if not v.startswith(("redis://", "rediss://")):
            raise ConfigError("REDIS_URL must start with redis:// or rediss://")
        return v

    @field_validator(
        "provider_timeout_seconds",
        "probe_timeout_seconds",
        "encoder_timeout_seconds",
        "heartbeat_interval_seconds",
    )
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ConfigError("Timeouts must be greater than zero")
        return v

    @field_validator("image_concurrency", "max_concurrent_runs", "max_subscribers_per_session")
    @classmethod
    def validate_positive_limit(cls, v: int) -> int:
        """Concurrency limits must be at least 1."""
        if v < 1:
            raise ConfigError("Concurrency limits must be at least 1")
        return v


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
