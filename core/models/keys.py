# =============================================================================
# core/models/keys.py - Key Lifecycle Schemas
# =============================================================================
# These models define the API contract for the managed key lifecycle:
# - ProvisionRequest / ProvisionResult: create a hunter's managed key
# - RotationResult / RotationReport: outcome of a rotation batch
# - ApiKeyStatus, BudgetCheck*, UsageLogRequest: budget/usage tracking
#
# The mobile client speaks camelCase JSON, so every model serializes with
# camelCase aliases while Python code uses snake_case attributes.
# =============================================================================

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> dict:
        """Serialize for a JSON response body (camelCase, no null fields)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Enums
# =============================================================================

class SubscriptionTier(str, Enum):
    """
    Hunter subscription tiers.

    - free: default tier, small budget, keys rotated when inactive
    - s_rank: premium tier, large budget, keys never auto-rotated
    """
    FREE = "free"
    S_RANK = "s_rank"

    @classmethod
    def from_profile(cls, value: str | None) -> "SubscriptionTier":
        """Resolve the tier stored on a profile row (NULL means free)."""
        try:
            return cls(value) if value else cls.FREE
        except ValueError:
            return cls.FREE


class ServiceType(str, Enum):
    """AI services whose usage is metered against the budget."""
    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"


class ProvisionOutcome(str, Enum):
    """
    Terminal state of a provisioning call.

    Never serialized; the HTTP layer maps it to a status code.
    """
    CREATED = "created"
    ALREADY_PROVISIONED = "already_provisioned"
    HUNTER_NOT_FOUND = "hunter_not_found"
    FAILED = "failed"


# =============================================================================
# Provisioning
# =============================================================================

class ProvisionRequest(CamelModel):
    """
    Body of POST /keys/provision.

    Fields are optional at the schema level so that missing or empty values
    produce the endpoint's own 400 message.

    Example:
        {"hunterId": "550e8400-...", "hunterClass": "Scholar", "hunterName": "Aria"}
    """
    hunter_id: str | None = None
    hunter_class: str | None = None
    hunter_name: str | None = None

    @property
    def missing_fields(self) -> list[str]:
        missing = []
        if not self.hunter_id:
            missing.append("hunterId")
        if not self.hunter_class:
            missing.append("hunterClass")
        return missing

    @property
    def invalid_fields(self) -> list[str]:
        """Present fields whose value cannot be used (hunterId must be a UUID)."""
        try:
            UUID(self.hunter_id or "")
        except ValueError:
            return ["hunterId"]
        return []


class ProvisionResult(CamelModel):
    """
    Structured result of KeyProvisioningService.provision_key.

    Example:
        {"success": true, "message": "Hunter API key created successfully",
         "keyCreated": true, "budgetCents": 500}
    """
    success: bool
    message: str
    key_created: bool | None = None
    budget_cents: int | None = None
    outcome: ProvisionOutcome = Field(default=ProvisionOutcome.FAILED, exclude=True)


# =============================================================================
# Rotation
# =============================================================================

class RotationResult(CamelModel):
    """Outcome of rotating one hunter's key."""
    hunter_id: str
    hunter_name: str | None = None
    rotated: bool = False
    old_key_revoked: bool = False
    error: str | None = None


class RotationReport(CamelModel):
    """
    Aggregate report of one rotation batch.

    Example:
        {"success": true, "message": "Processed 3 hunters, rotated 2 keys",
         "processedCount": 3, "rotatedCount": 2, "results": [...]}
    """
    success: bool = True
    message: str
    processed_count: int = 0
    rotated_count: int = 0
    results: list[RotationResult] = Field(default_factory=list)


# =============================================================================
# Budget / Usage
# =============================================================================

class ApiKeyStatus(CamelModel):
    """A hunter's managed-key and budget status."""
    has_key: bool
    budget_cents: int = 0
    usage_tokens: int = 0
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    daily_credits: int = 5
    budget_display: str = "$0.00"


class BudgetCheckRequest(CamelModel):
    """Estimated cost of an upcoming AI call."""
    estimated_cost_cents: int = Field(..., ge=0)


class BudgetCheckResponse(CamelModel):
    allowed: bool
    estimated_cost_cents: int


class UsageLogRequest(CamelModel):
    """Usage to record after a successful AI call."""
    tokens_used: int = Field(..., ge=0)
    cost_cents: int = Field(..., ge=0)
    service_type: ServiceType = ServiceType.GEMINI
