"""
Core configuration management using Pydantic V2 Settings.

This module provides type-safe, validated configuration management with support for:
- Environment variables
- .env file loading
- Runtime validation
- Immutable settings (provider credentials are read-only after start-up)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from ..domain.models import ProviderId

_MB = 1_048_576


class Settings(BaseSettings):
    """
    Application-wide configuration with environment variable support.

    All settings can be overridden via environment variables or .env file.
    The instance is frozen: build a new one instead of mutating it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Provider Credentials
    # ═══════════════════════════════════════════════════════════════════════
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key for GPT models",
    )

    gemini_api_key: SecretStr | None = Field(
        default=None,
        description="Google AI API key for Gemini models",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Provider Configuration
    # ═══════════════════════════════════════════════════════════════════════
    openai_model: str = Field(
        default="gpt-4o",
        description="OpenAI multimodal chat model",
    )

    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini multimodal model",
    )

    provider_timeout_seconds: int = Field(
        default=300,
        ge=10,
        le=3600,
        description="Timeout for a single provider call in seconds",
    )

    provider_max_attempts: int = Field(
        default=3,
        ge=1,
        le=3,
        description="Attempts per provider call for transient transport failures",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Application Configuration
    # ═══════════════════════════════════════════════════════════════════════
    app_name: str = Field(
        default="MedScan Analyzer",
        description="Application display name",
    )

    app_version: str = Field(
        default="1.0.0",
        description="Application version",
    )

    environment: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Runtime environment",
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Document Processing Configuration
    # ═══════════════════════════════════════════════════════════════════════
    max_total_file_size_mb: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum aggregate size of all files in one request in MB",
    )

    small_file_threshold_mb: int = Field(
        default=5,
        ge=1,
        description="Files at or above this size are encoded in chunks",
    )

    chunk_size_kb: int = Field(
        default=1024,
        ge=1,
        description="Chunk size used when encoding large files in KB",
    )

    encode_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Wall-clock limit for encoding a single file",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Logging Configuration
    # ═══════════════════════════════════════════════════════════════════════
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Web Server Configuration
    # ═══════════════════════════════════════════════════════════════════════
    app_host: str = Field(
        default="0.0.0.0",
        description="Web server host",
    )

    app_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Web server port",
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins",
    )

    api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the analysis server used by the client",
    )

    # ═══════════════════════════════════════════════════════════════════════
    # Validators
    # ═══════════════════════════════════════════════════════════════════════
    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is uppercase."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("openai_api_key", "gemini_api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v: object) -> object:
        """Treat an empty or whitespace-only key as not configured."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ═══════════════════════════════════════════════════════════════════════
    # Helper Methods
    # ═══════════════════════════════════════════════════════════════════════
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def max_total_file_size_bytes(self) -> int:
        """Get aggregate payload limit in bytes."""
        return self.max_total_file_size_mb * _MB

    @property
    def small_file_threshold_bytes(self) -> int:
        """Get the chunked-encoding threshold in bytes."""
        return self.small_file_threshold_mb * _MB

    @property
    def chunk_size_bytes(self) -> int:
        return self.chunk_size_kb * 1024

    def credential_for(self, provider: ProviderId) -> SecretStr | None:
        """Return the configured credential for a provider, if any."""
        return getattr(self, f"{provider.value}_api_key", None)

    def secret_values(self) -> list[str]:
        """Plain credential strings, used only for scrubbing logs and messages."""
        keys = (self.openai_api_key, self.gemini_api_key)
        return [k.get_secret_value() for k in keys if k is not None]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Singleton settings object
    """
    return Settings()


# Convenience export
settings: Settings = get_settings()
