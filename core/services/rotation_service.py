# =============================================================================
# core/services/rotation_service.py - Inactive Key Rotation
# =============================================================================
# Rotates the managed keys of free-tier hunters who have been inactive for
# longer than the configured threshold (30 days by default).
#
# For each hunter in the batch, independently:
#   a. Decrypt the stored key (used only to recognise the old external key)
#   b. Issue a replacement key
#   c. Encrypt and persist it, resetting usage (budget is left untouched)
#   d. Best effort: list external keys, match the old one, delete it
#   e. Record a per-hunter RotationResult
#
# One hunter's failure never aborts the batch. Only infra-level failures
# (bad configuration, store unreachable) fail the whole run.
#
# rotate_inactive_keys() is a pure function of "current time + batch query",
# so any scheduler can drive it: Celery beat, or a cron hitting the HTTP
# endpoint with the shared secret.
# =============================================================================

import functools
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from core.config import KeyManagementConfig
from core.models.keys import RotationReport, RotationResult
from core.services.advisory import AdvisoryOutcome, run_advisory
from core.services.provisioning_service import IssuerFactory
from lib.encryption import decrypt_secret, encrypt_secret
from lib.google_cloud import GoogleCloudKeyClient, IssuedKey
from lib.supabase_client import SupabaseClient
from lib.utils import ApplicationError, short_id

logger = logging.getLogger(__name__)


def verify_cron_token(authorization: str | None, expected_token: str | None) -> bool:
    """
    Check an ``Authorization: Bearer <token>`` header against the shared secret.

    Always False when no expected token is configured. The comparison is
    constant-time.
    """
    if not authorization or not expected_token:
        return False
    return hmac.compare_digest(
        authorization.encode("utf-8"),
        f"Bearer {expected_token}".encode("utf-8"),
    )


def find_stale_key(
    keys: list[IssuedKey],
    hunter_id: str,
    old_key_string: str,
    exclude_name: str | None = None,
) -> IssuedKey | None:
    """
    Pick the external key that most likely backs a hunter's old secret.

    An exact key-string match wins over a label match. The key issued in the
    current rotation is never returned, even though its label also carries
    the hunter's ID prefix.
    """
    candidates = [key for key in keys if key.name and key.name != exclude_name]

    for key in candidates:
        if key.key_string and key.key_string == old_key_string:
            return key

    prefix = short_id(hunter_id)
    for key in candidates:
        if prefix in key.display_name:
            return key

    return None


class KeyRotationService:
    """
    Service that rotates stale free-tier keys in batch.

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

    def rotate_inactive_keys(self, now: datetime | None = None) -> RotationReport:
        """
        Rotate the keys of every eligible hunter.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            RotationReport aggregating the per-hunter results

        Raises:
            ConfigError: Google Cloud config or master key missing
            SupabaseClientError: The rotation batch could not be queried
        """
        now = now or datetime.now(timezone.utc)
        google_config = self.config.require_google_cloud()
        master_key = self.config.require_master_key()

        inactive_before = now - timedelta(days=self.config.inactivity_days)
        hunters = self.store.fetch_rotation_candidates(inactive_before)

        if not hunters:
            logger.info("No inactive hunters found for key rotation")
            return RotationReport(message="No inactive hunters found for key rotation")

        logger.info(f"Found {len(hunters)} inactive hunters for key rotation")

        with self.issuer_factory(google_config) as issuer:
            results = [self._rotate_one(issuer, master_key, hunter) for hunter in hunters]

        rotated_count = sum(1 for result in results if result.rotated)
        logger.info(f"Key rotation finished: {rotated_count}/{len(results)} rotated")

        return RotationReport(
            message=f"Processed {len(results)} hunters, rotated {rotated_count} keys",
            processed_count=len(results),
            rotated_count=rotated_count,
            results=results,
        )

    def _rotate_one(self, issuer: GoogleCloudKeyClient, master_key: str, hunter: dict[str, Any]) -> RotationResult:
        hunter_id = hunter["id"]
        result = RotationResult(hunter_id=hunter_id, hunter_name=hunter.get("hunter_name"))

        try:
            old_key_string = decrypt_secret(hunter["gemini_key_enc"], master_key)

            display_name = f"{hunter.get('hunter_name')}-{hunter.get('hunter_class')}-rotated"
            new_key = issuer.create_api_key(display_name, hunter_id)

            try:
                self.store.update_hunter_profile(
                    hunter_id,
                    {
                        "gemini_key_enc": encrypt_secret(new_key.key_string, master_key),
                        "gemini_usage_tokens": 0,
                    },
                )
            except Exception:
                run_advisory(f"delete unstored key {new_key.name}", issuer.delete_api_key, new_key.name)
                raise

            result.rotated = True
            revocation = self._revoke_old_key(issuer, hunter_id, old_key_string, new_key.name)
            result.old_key_revoked = revocation.succeeded and revocation.value is True
            logger.info(f"Successfully rotated API key for hunter {hunter_id}")

        except ApplicationError as e:
            logger.error(f"Failed to rotate key for hunter {hunter_id}: {e.message}")
            result.error = e.message
        except Exception as e:
            logger.exception(f"Unexpected error rotating key for hunter {hunter_id}")
            result.error = f"Unexpected error: {type(e).__name__}"

        return result

    def _revoke_old_key(
        self,
        issuer: GoogleCloudKeyClient,
        hunter_id: str,
        old_key_string: str,
        new_key_name: str,
    ) -> AdvisoryOutcome:
        """List-and-match the old external key and delete it (best effort)."""

        def revoke() -> bool:
            stale = find_stale_key(issuer.list_api_keys(), hunter_id, old_key_string, exclude_name=new_key_name)
            if stale is None:
                logger.info(f"No old API key found to delete for hunter {hunter_id}")
                return False
            issuer.delete_api_key(stale.name)
            logger.info(f"Deleted old API key for hunter {hunter_id}")
            return True

        return run_advisory(f"revoke old key for hunter {hunter_id}", revoke)
