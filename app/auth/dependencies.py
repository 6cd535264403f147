# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies the Supabase access token a hunter's app sends with budget
# requests. Sign-up, login and sessions stay with Supabase Auth.
#
# Supports both:
# - ES256/RS256 (Supabase JWT signing keys) via JWKS
# - HS256 (legacy Supabase JWT secret) as fallback
#
# Usage:
#   from app.auth import get_current_hunter, AuthenticatedHunter
#
#   @router.get("/protected")
#   def protected(hunter: AuthenticatedHunter = Depends(get_current_hunter)):
#       return {"hunter_id": hunter.id}
# =============================================================================

import logging
import time
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JOSEError

from app.auth.models import AuthenticatedHunter
from app.config import settings

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _get_jwks_url() -> str:
    """Get the JWKS URL from the Supabase project URL."""
    return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"


def _fetch_jwks() -> dict:
    """Fetch JWKS from Supabase with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()
    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        response = httpx.get(_get_jwks_url(), timeout=settings.HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        return _jwks_cache
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Serve the stale copy rather than locking every hunter out
        return _jwks_cache or {"keys": []}


def _get_signing_key(token: str) -> tuple[str | dict, str]:
    """
    Get the key and algorithm to verify *token* with.

    Returns:
        Tuple of (key, algorithm)
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return settings.SUPABASE_JWT_SECRET, "HS256"

    alg = header.get("alg", "HS256")
    kid = header.get("kid")

    if alg != "HS256" and kid:
        for key in _fetch_jwks().get("keys", []):
            if key.get("kid") == kid:
                return key, alg
        logger.warning(f"Could not find JWKS key for alg={alg}, kid={kid}, falling back to HS256")

    return settings.SUPABASE_JWT_SECRET, "HS256"


def decode_hunter_token(token: str) -> AuthenticatedHunter:
    """
    Verify a Supabase access token and extract the hunter identity.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no subject
    """
    signing_key, algorithm = _get_signing_key(token)

    # HS256 is only trusted with a configured secret
    if algorithm == "HS256" and not signing_key:
        logger.error("Rejected HS256 hunter token: SUPABASE_JWT_SECRET is not configured")
        raise _unauthorized("Invalid token")

    try:
        payload = jwt.decode(token, signing_key, algorithms=[algorithm], audience="authenticated")
    except ExpiredSignatureError:
        logger.warning("Hunter token has expired")
        raise _unauthorized("Token has expired")
    except JOSEError as e:
        logger.warning(f"Hunter token validation failed: {e}")
        raise _unauthorized("Invalid token")

    subject = payload.get("sub")
    try:
        hunter_id = UUID(subject)
    except (TypeError, ValueError):
        logger.warning(f"Token carries a malformed subject: {subject!r}")
        raise _unauthorized("Invalid token: malformed hunter ID")

    return AuthenticatedHunter(id=hunter_id, email=payload.get("email"))


async def get_current_hunter(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthenticatedHunter:
    """
    Extract and validate the hunter from the Bearer token.

    Raises:
        HTTPException: 401 if token is missing, invalid or expired
    """
    hunter = decode_hunter_token(credentials.credentials)
    logger.debug(f"Authenticated hunter: {hunter.id}")
    return hunter
