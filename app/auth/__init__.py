# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Verifies Supabase access tokens for hunter-scoped endpoints.
#
# Usage:
#   from app.auth import get_current_hunter, AuthenticatedHunter
# =============================================================================

from app.auth.dependencies import decode_hunter_token, get_current_hunter
from app.auth.models import AuthenticatedHunter

__all__ = [
    "decode_hunter_token",
    "get_current_hunter",
    "AuthenticatedHunter",
]
