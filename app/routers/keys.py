# =============================================================================
# app/routers/keys.py - Managed Key Lifecycle Endpoints
# =============================================================================
# POST /keys/provision  - Issue a hunter's managed key (called at signup)
# POST /keys/rotate     - Rotate stale free-tier keys (called by cron)
# GET  /keys/status     - Authenticated hunter's key/budget status
# POST /keys/budget/check, /keys/usage - Budget metering for AI calls
#
# Every endpoint answers its own CORS preflight with an empty 200. The
# provision and rotate bodies always carry a stable `success` boolean and a
# human-readable `message`.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, Response

from app.auth import AuthenticatedHunter, get_current_hunter
from app.dependencies import (
    BudgetServiceDep,
    KeyConfigDep,
    ProvisioningRetryDep,
    ProvisioningServiceDep,
    RotationServiceDep,
)
from app.exceptions import (
    CORS_HEADERS,
    HunterNotFoundError,
    InvalidFieldsError,
    MissingFieldsError,
    RotationFailedError,
    UnauthorizedError,
)
from core.models.keys import (
    BudgetCheckRequest,
    BudgetCheckResponse,
    ProvisionOutcome,
    ProvisionRequest,
    UsageLogRequest,
)
from core.services.advisory import run_advisory
from core.services.rotation_service import verify_cron_token
from lib.supabase_client import SupabaseClientError
from lib.utils import ConfigError, short_id

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# CORS Preflight
# =============================================================================

@router.options("/provision", include_in_schema=False)
@router.options("/rotate", include_in_schema=False)
@router.options("/budget/check", include_in_schema=False)
@router.options("/usage", include_in_schema=False)
async def preflight():
    """Answer CORS preflight with an empty 200."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.options("/status", include_in_schema=False)
async def status_preflight():
    return Response(
        status_code=200,
        headers={**CORS_HEADERS, "Access-Control-Allow-Methods": "GET, OPTIONS"},
    )


# =============================================================================
# Provisioning
# =============================================================================

@router.post("/provision")
def provision_key(
    request: ProvisionRequest,
    service: ProvisioningServiceDep,
    schedule_retry: ProvisioningRetryDep,
):
    """
    Provision a managed Gemini API key for a hunter.

    Idempotent: a hunter who already holds a key gets 200 with
    keyCreated=false. A failure here never blocks signup: the response is
    500 and provisioning is queued for a background retry.
    """
    if request.missing_fields:
        raise MissingFieldsError(request.missing_fields)
    if request.invalid_fields:
        raise InvalidFieldsError(request.invalid_fields)

    result = service.provision_key(
        hunter_id=request.hunter_id,
        hunter_class=request.hunter_class,
        hunter_name=request.hunter_name,
    )

    if result.outcome == ProvisionOutcome.HUNTER_NOT_FOUND:
        raise HunterNotFoundError()

    if result.outcome == ProvisionOutcome.FAILED:
        run_advisory(
            f"queue provisioning retry for hunter {short_id(request.hunter_id)}",
            schedule_retry,
            request.hunter_id,
            request.hunter_class,
            request.hunter_name,
        )

    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.to_response(),
        headers=CORS_HEADERS,
    )


# =============================================================================
# Rotation
# =============================================================================

@router.post("/rotate")
def rotate_keys(
    config: KeyConfigDep,
    service: RotationServiceDep,
    authorization: Annotated[str | None, Header()] = None,
):
    """
    Rotate the keys of free-tier hunters inactive for 30+ days.

    Requires `Authorization: Bearer <CRON_SECRET_TOKEN>`. Individual
    rotation failures are reported per hunter in `results`; only infra
    failures return 500.
    """
    if not verify_cron_token(authorization, config.cron_secret_token):
        logger.warning("Rejected key rotation request with invalid cron token")
        raise UnauthorizedError()

    try:
        report = service.rotate_inactive_keys()
    except ConfigError as e:
        logger.error(f"Key rotation is misconfigured: {e.message}")
        raise RotationFailedError() from e
    except SupabaseClientError as e:
        logger.error(f"Key rotation could not query the batch: {e}")
        raise RotationFailedError("Failed to query inactive hunters") from e

    return JSONResponse(status_code=200, content=report.to_response(), headers=CORS_HEADERS)


# =============================================================================
# Budget / Usage
# =============================================================================

@router.get("/status")
def get_key_status(
    service: BudgetServiceDep,
    hunter: AuthenticatedHunter = Depends(get_current_hunter),
):
    """Get the authenticated hunter's managed key and budget status."""
    status = service.get_api_key_status(str(hunter.id))
    if status is None:
        raise HunterNotFoundError()
    return status.to_response()


@router.post("/budget/check")
def check_budget(
    request: BudgetCheckRequest,
    service: BudgetServiceDep,
    hunter: AuthenticatedHunter = Depends(get_current_hunter),
):
    """Check whether the remaining budget covers an estimated cost."""
    allowed = service.check_api_budget(str(hunter.id), request.estimated_cost_cents)
    return BudgetCheckResponse(
        allowed=allowed,
        estimated_cost_cents=request.estimated_cost_cents,
    ).to_response()


@router.post("/usage")
def log_usage(
    request: UsageLogRequest,
    service: BudgetServiceDep,
    hunter: AuthenticatedHunter = Depends(get_current_hunter),
):
    """Record usage after a successful AI call."""
    service.log_api_usage(
        str(hunter.id),
        tokens_used=request.tokens_used,
        cost_cents=request.cost_cents,
        service_type=request.service_type,
    )
    return {"success": True, "message": "Usage logged"}
