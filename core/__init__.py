# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - config.py: Immutable key management configuration
# - models/: Pydantic schemas for the key lifecycle API contract
# - services/: Provisioning, rotation and budget services
#
# Code in this package should NOT import from FastAPI or Celery.
# This keeps the logic testable and reusable.
# =============================================================================
