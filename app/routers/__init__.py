# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - keys.py: Managed key provisioning, rotation and budget endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import keys

__all__ = [
    "health",
    "keys",
]
