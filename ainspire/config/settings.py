"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without FFmpeg or API calls.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "AInspire Reference Collector API"
    api_version: str = "v1"

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key. Optional at startup; can be set through the credential endpoint."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used to classify stills."
    )
    anthropic_max_tokens: int = Field(
        default=512,
        description="Max tokens per classification reply. Labels are short."
    )
    classifier_mock_mode: bool = Field(
        default=False,
        description="Label stills locally instead of calling Claude."
    )

    # Video Processing
    video_mock_mode: bool = Field(
        default=False,
        description="Use placeholder frames instead of FFmpeg."
    )
    ffmpeg_path: str = Field(default="ffmpeg", description="Path to ffmpeg binary")
    ffprobe_path: str = Field(default="ffprobe", description="Path to ffprobe binary")
    capture_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Seconds between sampled frames."
    )
    min_capture_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Lower bound applied to intervals requested through the API."
    )
    max_capture_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound applied to intervals requested through the API."
    )
    max_upload_size_mb: int = Field(
        default=500,
        description="Maximum size of a single uploaded video in MB."
    )

    # Credential persistence
    credential_file: Optional[str] = Field(
        default="~/.ainspire/credentials.json",
        description="Where the API key entered through the API is kept. Empty keeps it in memory only."
    )

    # Localization
    default_language: str = Field(
        default="en",
        description="Language for status and alert messages (en, ko)."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def clamp_interval(self, seconds: float) -> float:
        """Bring a requested capture interval into the configured range."""
        return min(max(seconds, self.min_capture_interval_seconds), self.max_capture_interval_seconds)

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings whose requirements depend on other settings.

        Returns list of problems. The API key is not listed: it can arrive
        later through the credential endpoint.
        """
        missing = []

        if self.min_capture_interval_seconds > self.max_capture_interval_seconds:
            missing.append("MIN_CAPTURE_INTERVAL_SECONDS <= MAX_CAPTURE_INTERVAL_SECONDS")

        if self.default_language not in ("en", "ko"):
            missing.append("DEFAULT_LANGUAGE (en or ko)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
