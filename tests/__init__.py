# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Hunter Key Manager:
# - test_encryption.py: Secret encryption at rest
# - test_google_cloud.py: API Keys client against a mocked transport
# - test_provisioning.py / test_rotation.py: Key lifecycle services
# - test_budget.py: Budget helpers and service
# - test_supabase_client.py: Store error mapping
# - test_api.py: HTTP endpoints through FastAPI's TestClient
# - test_workers.py: Celery app, tasks and beat schedule
#
# Run tests with: pytest
# =============================================================================
