# =============================================================================
# tests/test_provisioning.py - Key Provisioning Tests
# =============================================================================

from uuid import UUID

import pytest

from core.config import KeyManagementConfig
from core.models.keys import ProvisionOutcome
from core.services.provisioning_service import KeyProvisioningService
from lib.encryption import decrypt_secret

from .conftest import HUNTER_ID, MASTER_KEY


@pytest.fixture
def service(key_config, store, issuer):
    return KeyProvisioningService(key_config, store=store, issuer_factory=lambda config: issuer)


class TestProvisionKey:

    def test_creates_and_stores_encrypted_key(self, service, store, issuer):
        result = service.provision_key(HUNTER_ID, "Scholar", "Aria")

        assert result.success is True
        assert result.key_created is True
        assert result.budget_cents == 500
        assert result.outcome == ProvisionOutcome.CREATED
        assert result.message == "Hunter API key created successfully"

        row = store.profiles[HUNTER_ID]
        assert row["gemini_budget_cents"] == 500
        assert row["gemini_usage_tokens"] == 0
        assert row["gemini_key_enc"] != issuer.created[0].key_string
        assert decrypt_secret(row["gemini_key_enc"], MASTER_KEY) == issuer.created[0].key_string

    def test_key_label_carries_name_class_and_id_prefix(self, service, issuer):
        service.provision_key(HUNTER_ID, "Scholar", "Aria")
        assert issuer.created[0].display_name == "Aria-Scholar-550e8400"

    def test_label_without_name(self, service, issuer):
        service.provision_key(HUNTER_ID, "Scholar")
        assert issuer.created[0].display_name == "Hunter-Scholar-550e8400"

    def test_accepts_uuid_objects(self, service, store):
        result = service.provision_key(UUID(HUNTER_ID), "Scholar")
        assert result.success is True
        assert store.profiles[HUNTER_ID]["gemini_key_enc"]

    def test_premium_budget(self, service, store):
        store.profiles[HUNTER_ID]["subscription_tier"] = "s_rank"

        result = service.provision_key(HUNTER_ID, "Scholar")
        assert result.budget_cents == 10000
        assert store.profiles[HUNTER_ID]["gemini_budget_cents"] == 10000

    def test_second_call_is_idempotent(self, service, store, issuer):
        service.provision_key(HUNTER_ID, "Scholar", "Aria")
        stored_blob = store.profiles[HUNTER_ID]["gemini_key_enc"]

        result = service.provision_key(HUNTER_ID, "Scholar", "Aria")

        assert result.success is True
        assert result.key_created is False
        assert result.outcome == ProvisionOutcome.ALREADY_PROVISIONED
        assert result.message == "Hunter already has an API key"
        assert len(issuer.created) == 1
        assert store.profiles[HUNTER_ID]["gemini_key_enc"] == stored_blob

    def test_unknown_hunter(self, service, issuer):
        result = service.provision_key("00000000-0000-0000-0000-000000000000", "Scholar")

        assert result.success is False
        assert result.outcome == ProvisionOutcome.HUNTER_NOT_FOUND
        assert issuer.created == []

    def test_profile_lookup_failure(self, service, store, issuer):
        store.fail_queries = True

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.outcome == ProvisionOutcome.FAILED
        assert issuer.created == []

    def test_issuance_failure_leaves_profile_untouched(self, service, store, issuer):
        issuer.fail_create_for.add(HUNTER_ID)

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.message == "Failed to create API key"
        assert store.profiles[HUNTER_ID]["gemini_key_enc"] is None
        assert ("update_hunter_profile", HUNTER_ID) not in store.calls

    def test_persist_failure_revokes_issued_key(self, service, store, issuer):
        store.fail_updates_for.add(HUNTER_ID)

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.message == "Failed to store API key securely"
        assert issuer.deleted == [issuer.created[0].name]
        assert issuer.keys == []

    def test_persist_and_cleanup_failure(self, service, store, issuer):
        store.fail_updates_for.add(HUNTER_ID)
        issuer.fail_delete = True

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.message == "Failed to store API key securely"
        assert len(issuer.keys) == 1

    def test_issuer_closed_after_use(self, service, issuer):
        service.provision_key(HUNTER_ID, "Scholar")
        assert issuer.closed == 1


class TestProvisionConfiguration:

    def test_missing_google_config_issues_nothing(self, store, issuer):
        config = KeyManagementConfig(master_key=MASTER_KEY)
        service = KeyProvisioningService(config, store=store, issuer_factory=lambda config: issuer)

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.message == "Key provisioning is not configured"
        assert issuer.created == []

    def test_missing_master_key_issues_nothing(self, google_cloud_settings, store, issuer):
        config = KeyManagementConfig(google_cloud=google_cloud_settings)
        service = KeyProvisioningService(config, store=store, issuer_factory=lambda config: issuer)

        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert issuer.created == []

    def test_unexpected_error_is_contained(self, key_config, store):
        def broken_factory(config):
            raise RuntimeError("boom")

        service = KeyProvisioningService(key_config, store=store, issuer_factory=broken_factory)
        result = service.provision_key(HUNTER_ID, "Scholar")

        assert result.success is False
        assert result.message == "Internal server error during key creation"


def test_display_name_for():
    assert KeyProvisioningService.display_name_for("Mage", "Jinwoo") == "Jinwoo-Mage"
    assert KeyProvisioningService.display_name_for("Mage") == "Hunter-Mage"
