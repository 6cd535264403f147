# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - An in-memory profile store and a recording key issuer, so services run
#   end to end without Supabase or Google Cloud
# =============================================================================

import os
from copy import deepcopy
from datetime import datetime, timedelta, timezone

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from core.config import KeyManagementConfig
from lib.google_cloud import IssuedKey, ProvisioningError, RevocationError
from lib.supabase_client import StoreErrorKind, SupabaseClientError
from lib.utils import short_id

MASTER_KEY = "test-master-key-0123456789"
CRON_TOKEN = "test-cron-secret"

HUNTER_ID = "550e8400-e29b-41d4-a716-446655440000"


# =============================================================================
# Fakes
# =============================================================================

class InMemoryProfileStore:
    """
    Stand-in for SupabaseClient backed by a dict of profile rows.

    Rows keep ``last_active`` as a datetime. Every method call is recorded in
    ``calls`` so tests can assert the store was (or was not) touched.
    """

    def __init__(self, profiles=None):
        self.profiles = {row["id"]: dict(row) for row in (profiles or [])}
        self.calls = []
        self.fail_updates_for = set()
        self.fail_queries = False
        self.budget_allowed = True
        self.usage_log = []

    def fetch_hunter_profile(self, hunter_id):
        self.calls.append(("fetch_hunter_profile", hunter_id))
        if self.fail_queries:
            raise SupabaseClientError("Failed to fetch hunter profile: boom", kind=StoreErrorKind.QUERY_FAILED)
        row = self.profiles.get(hunter_id)
        return deepcopy(row) if row is not None else None

    def update_hunter_profile(self, hunter_id, data):
        self.calls.append(("update_hunter_profile", hunter_id))
        if hunter_id in self.fail_updates_for:
            raise SupabaseClientError("Failed to update hunter profile: boom", kind=StoreErrorKind.UPDATE_FAILED)
        if hunter_id not in self.profiles:
            raise SupabaseClientError("Hunter profile not found for update", kind=StoreErrorKind.NOT_FOUND)
        self.profiles[hunter_id].update(data)
        return deepcopy(self.profiles[hunter_id])

    def fetch_rotation_candidates(self, inactive_before):
        self.calls.append(("fetch_rotation_candidates", inactive_before))
        if self.fail_queries:
            raise SupabaseClientError("Failed to query inactive hunters: boom", kind=StoreErrorKind.QUERY_FAILED)
        return [
            deepcopy(row)
            for row in self.profiles.values()
            if row.get("gemini_key_enc")
            and row.get("last_active") is not None
            and row["last_active"] < inactive_before
            and (row.get("subscription_tier") or "free") == "free"
        ]

    def check_api_budget(self, hunter_id, estimated_cost_cents):
        self.calls.append(("check_api_budget", hunter_id))
        return self.budget_allowed

    def log_api_usage(self, hunter_id, tokens_used, cost_cents, service_type="gemini"):
        self.calls.append(("log_api_usage", hunter_id))
        self.usage_log.append((hunter_id, tokens_used, cost_cents, service_type))

    def fetch_usage_summary(self, hunter_id):
        self.calls.append(("fetch_usage_summary", hunter_id))
        return None

    def ping(self):
        self.calls.append(("ping",))


class FakeIssuer:
    """
    Stand-in for GoogleCloudKeyClient holding keys in a list.

    Used as its own context manager so a factory can hand back the same
    instance for every call.
    """

    def __init__(self):
        self.keys: list[IssuedKey] = []
        self.created: list[IssuedKey] = []
        self.deleted: list[str] = []
        self.fail_create_for: set[str] = set()
        self.fail_delete = False
        self.closed = 0
        self._counter = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed += 1

    def add_existing(self, key_string, display_name):
        self._counter += 1
        key = IssuedKey(
            name=f"projects/test-project/locations/global/keys/existing-{self._counter}",
            key_string=key_string,
            display_name=display_name,
        )
        self.keys.append(key)
        return key

    def create_api_key(self, display_name, hunter_id):
        if hunter_id in self.fail_create_for:
            raise ProvisioningError("Failed to create API key: HTTP 500", status_code=500, body="boom")
        self._counter += 1
        key = IssuedKey(
            name=f"projects/test-project/locations/global/keys/new-{self._counter}",
            key_string=f"AIzaNewKey{self._counter}",
            display_name=f"{display_name}-{short_id(hunter_id)}",
        )
        self.keys.append(key)
        self.created.append(key)
        return key

    def list_api_keys(self):
        return list(self.keys)

    def delete_api_key(self, resource_name):
        if self.fail_delete:
            raise RevocationError("Failed to delete API key: HTTP 500", status_code=500)
        self.deleted.append(resource_name)
        self.keys = [key for key in self.keys if key.name != resource_name]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def rsa_key_pair():
    """A throwaway RSA key pair as (private PEM, public PEM)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


@pytest.fixture
def google_cloud_settings(rsa_key_pair):
    """Complete Google Cloud settings as they come from the environment."""
    return {
        "project_id": "test-project",
        "service_account_email": "issuer@test-project.iam.gserviceaccount.com",
        "private_key": rsa_key_pair[0],
        "private_key_id": "test-key-id",
    }


@pytest.fixture
def key_config(google_cloud_settings):
    return KeyManagementConfig(
        google_cloud=google_cloud_settings,
        master_key=MASTER_KEY,
        cron_secret_token=CRON_TOKEN,
    )


@pytest.fixture
def now():
    return datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def hunter_profile(now):
    """A freshly signed-up free-tier hunter without a key."""
    return {
        "id": HUNTER_ID,
        "hunter_name": "Aria",
        "hunter_class": "Scholar",
        "last_active": now - timedelta(days=1),
        "gemini_key_enc": None,
        "gemini_budget_cents": None,
        "gemini_usage_tokens": None,
        "subscription_tier": "free",
        "daily_quest_credits": 5,
    }


@pytest.fixture
def store(hunter_profile):
    return InMemoryProfileStore([hunter_profile])


@pytest.fixture
def issuer():
    return FakeIssuer()
