# =============================================================================
# core/services/advisory.py - Best-Effort Side Actions
# =============================================================================
# Some actions are advisory: the authoritative state is the encrypted key in
# the store, and deleting a stale or orphaned external key is cleanup that
# may fail without affecting the caller's result.
#
# run_advisory() makes that explicit. The failure variant of AdvisoryOutcome
# is logged here and only ever inspected, never raised.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdvisoryOutcome:
    """Result of a best-effort action."""
    action: str
    succeeded: bool
    value: Any = None
    error: str | None = None


def run_advisory(action: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> AdvisoryOutcome:
    """
    Run *func* as a best-effort action.

    Args:
        action: Short description used in logs (e.g. "delete orphaned key")
        func: The callable to run with *args / **kwargs

    Returns:
        AdvisoryOutcome with succeeded=False and the error text on failure
    """
    try:
        value = func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Advisory action failed ({action}): {e}")
        return AdvisoryOutcome(action=action, succeeded=False, error=str(e))

    logger.debug(f"Advisory action succeeded ({action})")
    return AdvisoryOutcome(action=action, succeeded=True, value=value)
