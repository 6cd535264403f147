# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .advisory import AdvisoryOutcome, run_advisory
from .budget_service import BudgetService
from .provisioning_service import KeyProvisioningService
from .rotation_service import KeyRotationService, verify_cron_token

__all__ = [
    "AdvisoryOutcome",
    "run_advisory",
    "BudgetService",
    "KeyProvisioningService",
    "KeyRotationService",
    "verify_cron_token",
]
