# =============================================================================
# core/services/budget_service.py - Budget & Usage Tracking
# =============================================================================
# Thin layer over the store-owned budget functions. Budget and usage counters
# live in the database and are only mutated by its atomic RPCs; this service
# reads status, forwards checks/logs, and holds the pure pricing helpers.
# =============================================================================

import logging
import math
from enum import Enum
from typing import Any

from core.models.keys import ApiKeyStatus, ServiceType, SubscriptionTier
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

# Gemini pricing in cents per 1K tokens
INPUT_COST_CENTS_PER_1K = 0.075
OUTPUT_COST_CENTS_PER_1K = 0.3

# S-Rank budgets below this are topped up
PREMIUM_REFILL_THRESHOLD_CENTS = 5000
# Free hunters below this see the upgrade prompt
UPGRADE_PROMPT_THRESHOLD_CENTS = 100
DEFAULT_DAILY_CREDITS = 5


class ApiKeyErrorKind(str, Enum):
    """Typed categories of key/budget failures shown to hunters."""
    BUDGET_EXHAUSTED = "budget_exhausted"
    KEY_NOT_FOUND = "key_not_found"
    SERVICE_UNAVAILABLE = "service_unavailable"
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"


API_KEY_ERROR_MESSAGES: dict[ApiKeyErrorKind, str] = {
    ApiKeyErrorKind.BUDGET_EXHAUSTED: "Your AI quest energy has been depleted. Upgrade to S-Rank Pass for unlimited quests!",
    ApiKeyErrorKind.KEY_NOT_FOUND: "Your Hunter credentials need to be reforged. Please contact support.",
    ApiKeyErrorKind.SERVICE_UNAVAILABLE: "The Shadow Realm is temporarily unreachable. Please try again in a moment.",
    ApiKeyErrorKind.RATE_LIMITED: "You're generating quests too quickly! Please wait a moment before requesting more.",
    ApiKeyErrorKind.INVALID_REQUEST: "The quest request couldn't be understood. Please try again.",
}

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred. The shadows are investigating..."


# =============================================================================
# Pure Helpers
# =============================================================================

def format_budget_amount(cents: int) -> str:
    """
    Format minor currency units for display.

    Example:
        format_budget_amount(1050)  # "$10.50"
        format_budget_amount(0)     # "$0.00"
    """
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), 100)
    return f"{sign}${dollars}.{remainder:02d}"


def estimate_api_cost(input_tokens: int, output_tokens: int = 0) -> int:
    """Estimate the cost of a Gemini call in cents, rounded up."""
    input_cost = (input_tokens / 1000) * INPUT_COST_CENTS_PER_1K
    output_cost = (output_tokens / 1000) * OUTPUT_COST_CENTS_PER_1K
    return math.ceil(input_cost + output_cost)


def get_api_key_error_message(kind: ApiKeyErrorKind | str | None) -> str:
    """Map an error kind to the hunter-facing message."""
    try:
        return API_KEY_ERROR_MESSAGES[ApiKeyErrorKind(kind)]
    except ValueError:
        return DEFAULT_ERROR_MESSAGE


# =============================================================================
# Service
# =============================================================================

class BudgetService:
    """
    Reads budget status and forwards usage to the store's atomic functions.

    Args:
        store: Profile store (the SupabaseClient class or a compatible fake)
    """

    def __init__(self, store=SupabaseClient):
        self.store = store

    def get_api_key_status(self, hunter_id: str) -> ApiKeyStatus | None:
        """Return the hunter's key/budget status, or None if no profile exists."""
        profile = self.store.fetch_hunter_profile(normalize_uuid(hunter_id))
        if profile is None:
            return None

        budget_cents = profile.get("gemini_budget_cents") or 0
        daily_credits = profile.get("daily_quest_credits")
        return ApiKeyStatus(
            has_key=bool(profile.get("gemini_key_enc")),
            budget_cents=budget_cents,
            usage_tokens=profile.get("gemini_usage_tokens") or 0,
            subscription_tier=SubscriptionTier.from_profile(profile.get("subscription_tier")),
            daily_credits=DEFAULT_DAILY_CREDITS if daily_credits is None else daily_credits,
            budget_display=format_budget_amount(budget_cents),
        )

    def check_api_budget(self, hunter_id: str, estimated_cost_cents: int) -> bool:
        """Whether the hunter's remaining budget covers the estimated cost."""
        allowed = self.store.check_api_budget(normalize_uuid(hunter_id), estimated_cost_cents)
        if not allowed:
            logger.info(f"Budget check denied for hunter {hunter_id} ({estimated_cost_cents} cents)")
        return allowed

    def log_api_usage(
        self,
        hunter_id: str,
        tokens_used: int,
        cost_cents: int,
        service_type: ServiceType = ServiceType.GEMINI,
    ) -> None:
        """Record usage after a successful AI call."""
        self.store.log_api_usage(
            normalize_uuid(hunter_id),
            tokens_used,
            cost_cents,
            ServiceType(service_type).value,
        )
        logger.debug(f"Logged {tokens_used} tokens ({cost_cents} cents) for hunter {hunter_id}")

    def get_usage_summary(self, hunter_id: str) -> dict[str, Any] | None:
        return self.store.fetch_usage_summary(normalize_uuid(hunter_id))

    def check_budget_refill_needed(self, hunter_id: str) -> bool:
        """S-Rank hunters whose budget fell under the refill threshold."""
        status = self.get_api_key_status(hunter_id)
        if status is None or status.subscription_tier != SubscriptionTier.S_RANK:
            return False
        return status.budget_cents < PREMIUM_REFILL_THRESHOLD_CENTS

    def should_show_upgrade_prompt(self, hunter_id: str) -> bool:
        """Free hunters running low on budget or out of daily credits."""
        status = self.get_api_key_status(hunter_id)
        if status is None or status.subscription_tier != SubscriptionTier.FREE:
            return False
        return status.budget_cents < UPGRADE_PROMPT_THRESHOLD_CENTS or status.daily_credits <= 0
