# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends(), and tests swap
# them through app.dependency_overrides.
# =============================================================================

from functools import lru_cache
from typing import Annotated, Any, Callable

from fastapi import Depends

from app.config import settings
from core.config import KeyManagementConfig
from core.services.budget_service import BudgetService
from core.services.provisioning_service import KeyProvisioningService
from core.services.rotation_service import KeyRotationService
from lib.supabase_client import SupabaseClient


@lru_cache
def get_key_config() -> KeyManagementConfig:
    """
    Build the process-wide key configuration once.

    Loaded at first use and never mutated afterwards.
    """
    return KeyManagementConfig.from_settings(settings)


def get_supabase_client() -> type[SupabaseClient]:
    """
    Get the store.

    Returns the singleton client wrapper class.
    """
    return SupabaseClient


KeyConfigDep = Annotated[KeyManagementConfig, Depends(get_key_config)]
SupabaseDep = Annotated[type[SupabaseClient], Depends(get_supabase_client)]


def get_provisioning_service(config: KeyConfigDep, store: SupabaseDep) -> KeyProvisioningService:
    return KeyProvisioningService(config, store=store)


def get_rotation_service(config: KeyConfigDep, store: SupabaseDep) -> KeyRotationService:
    return KeyRotationService(config, store=store)


def get_budget_service(store: SupabaseDep) -> BudgetService:
    return BudgetService(store=store)


ProvisioningServiceDep = Annotated[KeyProvisioningService, Depends(get_provisioning_service)]
RotationServiceDep = Annotated[KeyRotationService, Depends(get_rotation_service)]
BudgetServiceDep = Annotated[BudgetService, Depends(get_budget_service)]


# =============================================================================
# Background Retry
# =============================================================================

def schedule_provisioning_retry(hunter_id: str, hunter_class: str, hunter_name: str | None = None) -> Any:
    """Queue workers.tasks.provision_hunter_key on the Celery broker."""
    from workers.tasks import provision_hunter_key

    return provision_hunter_key.delay(hunter_id, hunter_class, hunter_name)


def get_provisioning_retry() -> Callable[..., Any]:
    return schedule_provisioning_retry


ProvisioningRetryDep = Annotated[Callable[..., Any], Depends(get_provisioning_retry)]
