# =============================================================================
# core/services/provisioning_service.py - Managed Key Provisioning
# =============================================================================
# Issues, encrypts and stores a hunter's managed Gemini API key.
#
# Per hunter the flow is:
#
#   NO_KEY -> ISSUING -> ENCRYPTING -> PERSISTED
#                |            |
#                +-- fail --> CLEANUP -> NO_KEY (reported failure)
#
# Provisioning is idempotent: a hunter who already holds a key gets a
# success result with key_created=False and no new external key is issued.
# The result is always structured; nothing raises past provision_key(), so
# a failed provisioning never blocks the wider signup flow.
# =============================================================================

import functools
import logging
from typing import Callable

from core.config import KeyManagementConfig
from core.models.keys import ProvisionOutcome, ProvisionResult, SubscriptionTier
from core.services.advisory import run_advisory
from lib.encryption import encrypt_secret
from lib.google_cloud import GoogleCloudConfig, GoogleCloudKeyClient, GoogleCloudError
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import ConfigError, normalize_uuid

logger = logging.getLogger(__name__)

IssuerFactory = Callable[[GoogleCloudConfig], GoogleCloudKeyClient]


class KeyProvisioningService:
    """
    Service that provisions managed API keys for hunters.

    Args:
        config: Process-wide key management configuration
        store: Profile store (the SupabaseClient class or a compatible fake)
        issuer_factory: Builds a key issuer from a validated GoogleCloudConfig
    """

    def __init__(
        self,
        config: KeyManagementConfig,
        store=SupabaseClient,
        issuer_factory: IssuerFactory | None = None,
    ):
        self.config = config
        self.store = store
        self.issuer_factory = issuer_factory or functools.partial(
            GoogleCloudKeyClient, timeout=config.http_timeout_seconds
        )

    @staticmethod
    def display_name_for(hunter_class: str, hunter_name: str | None = None) -> str:
        """Label for a newly issued key (the issuer appends the ID prefix)."""
        return f"{hunter_name}-{hunter_class}" if hunter_name else f"Hunter-{hunter_class}"

    def provision_key(
        self,
        hunter_id: str,
        hunter_class: str,
        hunter_name: str | None = None,
    ) -> ProvisionResult:
        """
        Ensure the hunter holds a managed API key.

        Args:
            hunter_id: The hunter's profile UUID
            hunter_class: Hunter class, used in the key label
            hunter_name: Optional display name, used in the key label

        Returns:
            ProvisionResult. Never raises.
        """
        hunter_id = normalize_uuid(hunter_id)

        try:
            return self._provision(hunter_id, hunter_class, hunter_name)
        except Exception:
            logger.exception(f"Unexpected error provisioning key for hunter {hunter_id}")
            return ProvisionResult(
                success=False,
                message="Internal server error during key creation",
                outcome=ProvisionOutcome.FAILED,
            )

    def _provision(self, hunter_id: str, hunter_class: str, hunter_name: str | None) -> ProvisionResult:
        try:
            profile = self.store.fetch_hunter_profile(hunter_id)
        except SupabaseClientError as e:
            logger.error(f"Profile lookup failed for hunter {hunter_id}: {e}")
            return ProvisionResult(
                success=False,
                message="Failed to look up hunter profile",
                outcome=ProvisionOutcome.FAILED,
            )

        if profile is None:
            logger.warning(f"Provisioning requested for unknown hunter {hunter_id}")
            return ProvisionResult(
                success=False,
                message="Hunter profile not found",
                outcome=ProvisionOutcome.HUNTER_NOT_FOUND,
            )

        budget_cents = self.config.budget_for(
            SubscriptionTier.from_profile(profile.get("subscription_tier"))
        )

        if profile.get("gemini_key_enc"):
            return ProvisionResult(
                success=True,
                message="Hunter already has an API key",
                key_created=False,
                budget_cents=budget_cents,
                outcome=ProvisionOutcome.ALREADY_PROVISIONED,
            )

        # Fail on configuration before any external side effect
        try:
            google_config = self.config.require_google_cloud()
            master_key = self.config.require_master_key()
        except ConfigError as e:
            logger.error(f"Key provisioning is misconfigured: {e.message}")
            return ProvisionResult(
                success=False,
                message="Key provisioning is not configured",
                outcome=ProvisionOutcome.FAILED,
            )

        display_name = self.display_name_for(hunter_class, hunter_name)
        logger.info(f"Creating API key for hunter {hunter_id} with class {hunter_class}")

        with self.issuer_factory(google_config) as issuer:
            try:
                issued = issuer.create_api_key(display_name, hunter_id)
            except GoogleCloudError as e:
                logger.error(f"Key issuance failed for hunter {hunter_id}: {e.message}")
                return ProvisionResult(
                    success=False,
                    message="Failed to create API key",
                    outcome=ProvisionOutcome.FAILED,
                )

            try:
                encrypted_key = encrypt_secret(issued.key_string, master_key)
                self.store.update_hunter_profile(
                    hunter_id,
                    {
                        "gemini_key_enc": encrypted_key,
                        "gemini_budget_cents": budget_cents,
                        "gemini_usage_tokens": 0,
                    },
                )
            except Exception as e:
                logger.error(f"Failed to store API key for hunter {hunter_id}: {e}")
                # Compensate so the issued key does not live on unreferenced
                cleanup = run_advisory(
                    f"delete orphaned key {issued.name}",
                    issuer.delete_api_key,
                    issued.name,
                )
                if not cleanup.succeeded:
                    logger.error(f"Orphaned API key {issued.name} left behind for hunter {hunter_id}")
                return ProvisionResult(
                    success=False,
                    message="Failed to store API key securely",
                    outcome=ProvisionOutcome.FAILED,
                )

        logger.info(f"Successfully created and stored API key for hunter {hunter_id}")
        return ProvisionResult(
            success=True,
            message="Hunter API key created successfully",
            key_created=True,
            budget_cents=budget_cents,
            outcome=ProvisionOutcome.CREATED,
        )
