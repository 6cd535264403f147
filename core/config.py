# =============================================================================
# core/config.py - Key Management Configuration
# =============================================================================
# The immutable configuration struct injected into every key-lifecycle
# service. It is built once per process from Settings and never mutated;
# tests construct their own instance instead of patching globals.
#
# Usage:
#   from core.config import KeyManagementConfig
#   config = KeyManagementConfig.from_settings(settings)
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.models.keys import SubscriptionTier
from lib.google_cloud import GoogleCloudConfig, validate_config
from lib.utils import ConfigError

if TYPE_CHECKING:
    from app.config import Settings


@dataclass(frozen=True)
class KeyManagementConfig:
    """
    Process-wide, read-only key lifecycle configuration.

    Google Cloud fields and secrets may be absent; they are validated when a
    call needs them so the failure carries a precise ConfigError.
    """

    google_cloud: dict[str, str | None] = field(default_factory=dict, repr=False)
    master_key: str | None = field(default=None, repr=False)
    cron_secret_token: str | None = field(default=None, repr=False)
    inactivity_days: int = 30
    free_budget_cents: int = 500
    premium_budget_cents: int = 10000
    http_timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "KeyManagementConfig":
        return cls(
            google_cloud={
                "project_id": settings.GOOGLE_CLOUD_PROJECT_ID,
                "service_account_email": settings.GOOGLE_CLOUD_SERVICE_ACCOUNT_EMAIL,
                "private_key": settings.GOOGLE_CLOUD_PRIVATE_KEY,
                "private_key_id": settings.GOOGLE_CLOUD_PRIVATE_KEY_ID,
            },
            master_key=settings.API_KEY_ENCRYPTION_KEY,
            cron_secret_token=settings.CRON_SECRET_TOKEN,
            inactivity_days=settings.KEY_ROTATION_INACTIVITY_DAYS,
            free_budget_cents=settings.FREE_TIER_BUDGET_CENTS,
            premium_budget_cents=settings.PREMIUM_BUDGET_CENTS,
            http_timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        )

    def require_google_cloud(self) -> GoogleCloudConfig:
        return validate_config(self.google_cloud)

    def require_master_key(self) -> str:
        if not self.master_key:
            raise ConfigError("Encryption key not configured", missing=["API_KEY_ENCRYPTION_KEY"])
        return self.master_key

    def budget_for(self, tier: SubscriptionTier) -> int:
        """Initial (and nominal) budget in cents for a subscription tier."""
        if tier == SubscriptionTier.S_RANK:
            return self.premium_budget_cents
        return self.free_budget_cents
