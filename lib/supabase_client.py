# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for the Supabase operations the key
# lifecycle needs. It implements the singleton pattern to reuse a single
# client connection and provides specialized methods for:
# - Reading and updating hunter profiles (encrypted key, budget, usage)
# - Querying the rotation batch (stale free-tier key holders)
# - Calling the store-owned atomic budget functions (check/log usage)
#
# Budget and usage counters are owned by the database. This wrapper never
# does read-modify-write on them; it either overwrites a single row or calls
# an RPC that performs the mutation atomically.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_hunter_profile(hunter_id)
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import create_client, Client

from app.config import settings
from lib.utils import ApplicationError, normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST error code for ".single()" matching zero rows
PGRST_NO_ROWS = "PGRST116"
# Postgres invalid_text_representation, e.g. a hunter ID that is not a UUID
PG_INVALID_TEXT = "22P02"

PROFILE_COLUMNS = (
    "id, hunter_name, hunter_class, last_active, gemini_key_enc, "
    "gemini_budget_cents, gemini_usage_tokens, subscription_tier, daily_quest_credits"
)


class StoreErrorKind(str, Enum):
    """Typed categories for store failures."""
    CLIENT_INIT_FAILED = "CLIENT_INIT_FAILED"
    NOT_FOUND = "NOT_FOUND"
    QUERY_FAILED = "QUERY_FAILED"
    UPDATE_FAILED = "UPDATE_FAILED"
    RPC_FAILED = "RPC_FAILED"


class SupabaseClientError(ApplicationError):
    """
    Error during Supabase operations.

    Carries a StoreErrorKind so callers branch on the kind, never on the
    message text.
    """

    def __init__(
        self,
        message: str,
        kind: StoreErrorKind = StoreErrorKind.QUERY_FAILED,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=kind.value, suggestion=suggestion, details=details)
        self.kind = kind


def _is_no_rows(error: Exception) -> bool:
    return isinstance(error, APIError) and error.code in (PGRST_NO_ROWS, PG_INVALID_TEXT)


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods, so the class itself can
    be injected into services as the store.

    Example:
        profile = SupabaseClient.fetch_hunter_profile("550e8400-...")
        if profile and profile.get("gemini_key_enc"):
            ...
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses the service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations on any hunter's row.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    kind=StoreErrorKind.CLIENT_INIT_FAILED,
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                ) from e
        return cls._instance

    # -------------------------------------------------------------------------
    # Hunter Profiles
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_hunter_profile(cls, hunter_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch the key-lifecycle columns of a hunter's profile.

        Returns:
            Profile dict, or None if no profile exists for this ID

        Raises:
            SupabaseClientError: If the query fails for any other reason
        """
        client = cls.get_client()
        hunter_id_str = normalize_uuid(hunter_id)

        try:
            response = (
                client.table("profiles")
                .select(PROFILE_COLUMNS)
                .eq("id", hunter_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if _is_no_rows(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch hunter profile: {e}",
                kind=StoreErrorKind.QUERY_FAILED,
                details={"hunter_id": hunter_id_str},
            ) from e

    @classmethod
    def update_hunter_profile(
        cls,
        hunter_id: str | UUID,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Overwrite columns on a single hunter's row.

        ``updated_at`` is stamped automatically. The update is one atomic
        single-row statement; no other row is touched.

        Raises:
            SupabaseClientError: If the update fails or matched no row
        """
        client = cls.get_client()
        hunter_id_str = normalize_uuid(hunter_id)
        update_data = {**data, "updated_at": datetime.now(timezone.utc).isoformat()}

        try:
            response = (
                client.table("profiles")
                .update(update_data)
                .eq("id", hunter_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update hunter profile: {e}",
                kind=StoreErrorKind.UPDATE_FAILED,
                details={"hunter_id": hunter_id_str, "columns": sorted(data)},
            ) from e

        if not response.data:
            raise SupabaseClientError(
                message=f"Hunter profile not found for update: {hunter_id_str}",
                kind=StoreErrorKind.NOT_FOUND,
                details={"hunter_id": hunter_id_str},
            )

        logger.debug(f"Updated profile {hunter_id_str}: {sorted(data)}")
        return response.data[0]

    @classmethod
    def fetch_rotation_candidates(cls, inactive_before: datetime) -> list[dict[str, Any]]:
        """
        Fetch free-tier hunters holding a key and inactive since *inactive_before*.

        Raises:
            SupabaseClientError: If the query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("profiles")
                .select("id, hunter_name, hunter_class, last_active, gemini_key_enc, subscription_tier")
                .not_.is_("gemini_key_enc", "null")
                .lt("last_active", inactive_before.isoformat())
                .eq("subscription_tier", "free")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to query inactive hunters: {e}",
                kind=StoreErrorKind.QUERY_FAILED,
                suggestion="Check that the profiles table is reachable with the service key",
                details={"inactive_before": inactive_before.isoformat()},
            ) from e

        hunters = response.data or []
        logger.debug(f"Found {len(hunters)} rotation candidates inactive before {inactive_before.isoformat()}")
        return hunters

    # -------------------------------------------------------------------------
    # Budget / Usage (store-owned atomic functions)
    # -------------------------------------------------------------------------

    @classmethod
    def check_api_budget(cls, hunter_id: str | UUID, estimated_cost_cents: int) -> bool:
        """Ask the store whether the hunter can afford *estimated_cost_cents*."""
        client = cls.get_client()
        hunter_id_str = normalize_uuid(hunter_id)

        try:
            response = client.rpc(
                "check_api_budget",
                {"p_hunter_id": hunter_id_str, "p_estimated_cost_cents": estimated_cost_cents},
            ).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to check API budget: {e}",
                kind=StoreErrorKind.RPC_FAILED,
                details={"hunter_id": hunter_id_str},
            ) from e

        return bool(response.data)

    @classmethod
    def log_api_usage(
        cls,
        hunter_id: str | UUID,
        tokens_used: int,
        cost_cents: int,
        service_type: str = "gemini",
    ) -> None:
        """Record usage and debit the budget atomically via the store RPC."""
        client = cls.get_client()
        hunter_id_str = normalize_uuid(hunter_id)

        try:
            client.rpc(
                "log_api_usage",
                {
                    "p_hunter_id": hunter_id_str,
                    "p_tokens_used": tokens_used,
                    "p_cost_cents": cost_cents,
                    "p_service_type": service_type,
                },
            ).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to log API usage: {e}",
                kind=StoreErrorKind.RPC_FAILED,
                details={"hunter_id": hunter_id_str, "service_type": service_type},
            ) from e

    @classmethod
    def fetch_usage_summary(cls, hunter_id: str | UUID) -> dict[str, Any] | None:
        """Fetch the aggregated usage row from the api_usage_summary view."""
        client = cls.get_client()
        hunter_id_str = normalize_uuid(hunter_id)

        try:
            response = (
                client.table("api_usage_summary")
                .select("*")
                .eq("hunter_id", hunter_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if _is_no_rows(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch usage summary: {e}",
                kind=StoreErrorKind.QUERY_FAILED,
                details={"hunter_id": hunter_id_str},
            ) from e

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @classmethod
    def ping(cls) -> None:
        """Run a trivial query to prove the profiles table is reachable."""
        client = cls.get_client()
        try:
            client.table("profiles").select("id").limit(1).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Supabase is unreachable: {e}",
                kind=StoreErrorKind.QUERY_FAILED,
            ) from e
