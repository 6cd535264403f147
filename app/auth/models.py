# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuthenticatedHunter(BaseModel):
    """
    Hunter identity extracted from a Supabase access token.

    This is the minimal identity available from the token itself,
    without querying the database.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str | None = None
