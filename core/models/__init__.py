# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - keys.py: Provisioning, rotation and budget schemas
#
# These models define the "contract" between API and clients.
# =============================================================================

from .keys import (
    ApiKeyStatus,
    BudgetCheckRequest,
    BudgetCheckResponse,
    CamelModel,
    ProvisionOutcome,
    ProvisionRequest,
    ProvisionResult,
    RotationReport,
    RotationResult,
    ServiceType,
    SubscriptionTier,
    UsageLogRequest,
)

__all__ = [
    "ApiKeyStatus",
    "BudgetCheckRequest",
    "BudgetCheckResponse",
    "CamelModel",
    "ProvisionOutcome",
    "ProvisionRequest",
    "ProvisionResult",
    "RotationReport",
    "RotationResult",
    "ServiceType",
    "SubscriptionTier",
    "UsageLogRequest",
]
