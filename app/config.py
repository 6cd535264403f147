# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Store connection settings are validated at startup. Key-lifecycle secrets
# (Google Cloud service account, master encryption key, cron token) are
# optional here and validated at call time, so a misconfigured deployment
# fails the affected request with a clear ConfigError instead of refusing
# to boot.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 JWT secret for verifying hunter access tokens"
    )

    # -------------------------------------------------------------------------
    # Google Cloud Service Account (API key issuer)
    # -------------------------------------------------------------------------

    GOOGLE_CLOUD_PROJECT_ID: str | None = Field(
        default=None,
        description="Project that owns the issued Gemini API keys"
    )

    GOOGLE_CLOUD_SERVICE_ACCOUNT_EMAIL: str | None = Field(
        default=None,
        description="Service account with the API Keys Admin role"
    )

    GOOGLE_CLOUD_PRIVATE_KEY: str | None = Field(
        default=None,
        description="PEM-encoded service account private key (\\n escapes allowed)"
    )

    GOOGLE_CLOUD_PRIVATE_KEY_ID: str | None = Field(
        default=None,
        description="ID of the service account private key (JWT 'kid')"
    )

    # -------------------------------------------------------------------------
    # Key Lifecycle Secrets
    # -------------------------------------------------------------------------

    API_KEY_ENCRYPTION_KEY: str | None = Field(
        default=None,
        description="Master key from which per-record encryption keys are derived"
    )

    CRON_SECRET_TOKEN: str | None = Field(
        default=None,
        description="Shared secret the scheduler presents as a Bearer token"
    )

    # -------------------------------------------------------------------------
    # Key Lifecycle Policy
    # -------------------------------------------------------------------------

    KEY_ROTATION_INACTIVITY_DAYS: int = Field(
        default=30,
        ge=1,
        description="Rotate free-tier keys of hunters inactive for this many days"
    )

    FREE_TIER_BUDGET_CENTS: int = Field(
        default=500,
        ge=0,
        description="Initial Gemini budget for free hunters ($5)"
    )

    PREMIUM_BUDGET_CENTS: int = Field(
        default=10000,
        ge=0,
        description="Initial Gemini budget for S-Rank hunters ($100)"
    )

    ROTATION_CRON_HOUR: int = Field(
        default=3,
        ge=0,
        le=23,
        description="UTC hour at which Celery beat runs key rotation"
    )

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every outbound HTTP call"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
