# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background tasks for the managed key lifecycle.
#
# Tasks:
# - rotate_inactive_keys: Daily rotation batch (scheduled by beat)
# - provision_hunter_key: Provisioning with retry, for signups whose
#   synchronous provisioning failed
# =============================================================================

import logging
from typing import Any

from celery import shared_task

logger = logging.getLogger(__name__)

PROVISION_RETRY_DELAY_SECONDS = 300
PROVISION_MAX_RETRIES = 5


def _key_config():
    from app.dependencies import get_key_config

    return get_key_config()


# =============================================================================
# Rotation Task
# =============================================================================

@shared_task(name="workers.tasks.rotate_inactive_keys")
def rotate_inactive_keys() -> dict[str, Any]:
    """
    Rotate the keys of free-tier hunters inactive past the threshold.

    Returns:
        The rotation report in its wire shape (camelCase keys)

    Raises:
        ConfigError / SupabaseClientError: The batch could not run at all;
        Celery records the task as failed.
    """
    from core.services.rotation_service import KeyRotationService

    logger.info("Starting scheduled key rotation")

    service = KeyRotationService(_key_config())
    report = service.rotate_inactive_keys()

    logger.info(f"Scheduled key rotation finished: {report.message}")
    return report.to_response()


# =============================================================================
# Provisioning Retry Task
# =============================================================================

@shared_task(
    bind=True,
    name="workers.tasks.provision_hunter_key",
    max_retries=PROVISION_MAX_RETRIES,
    default_retry_delay=PROVISION_RETRY_DELAY_SECONDS,
)
def provision_hunter_key(
    self,
    hunter_id: str,
    hunter_class: str,
    hunter_name: str | None = None,
) -> dict[str, Any]:
    """
    Provision a hunter's key, retrying transient failures.

    Provisioning is idempotent, so a retry after a partial success simply
    reports the key as already present.

    Args:
        hunter_id: The hunter's profile UUID
        hunter_class: Hunter class, used in the key label
        hunter_name: Optional display name, used in the key label

    Returns:
        The provisioning result in its wire shape
    """
    from core.models.keys import ProvisionOutcome
    from core.services.provisioning_service import KeyProvisioningService

    service = KeyProvisioningService(_key_config())
    result = service.provision_key(hunter_id, hunter_class, hunter_name)

    if result.outcome == ProvisionOutcome.FAILED:
        logger.warning(
            f"Provisioning failed for hunter {hunter_id} "
            f"(attempt {self.request.retries + 1}): {result.message}"
        )
        raise self.retry()

    return result.to_response()
