# =============================================================================
# tests/test_rotation.py - Inactive Key Rotation Tests
# =============================================================================

from datetime import timedelta

import pytest

from core.config import KeyManagementConfig
from core.services.rotation_service import KeyRotationService, find_stale_key, verify_cron_token
from lib.encryption import decrypt_secret, encrypt_secret
from lib.google_cloud import IssuedKey
from lib.supabase_client import SupabaseClientError
from lib.utils import ConfigError

from .conftest import MASTER_KEY, FakeIssuer, InMemoryProfileStore

STALE_IDS = [
    "11111111-aaaa-4aaa-8aaa-000000000001",
    "22222222-bbbb-4bbb-8bbb-000000000002",
    "33333333-cccc-4ccc-8ccc-000000000003",
]
ACTIVE_ID = "44444444-dddd-4ddd-8ddd-000000000004"
PREMIUM_ID = "55555555-eeee-4eee-8eee-000000000005"


def _profile(hunter_id, name, last_active, old_key, tier="free"):
    return {
        "id": hunter_id,
        "hunter_name": name,
        "hunter_class": "Mage",
        "last_active": last_active,
        "gemini_key_enc": encrypt_secret(old_key, MASTER_KEY),
        "gemini_budget_cents": 320,
        "gemini_usage_tokens": 9000,
        "subscription_tier": tier,
    }


@pytest.fixture
def world(now):
    """Three stale free hunters, one active hunter and one stale premium hunter."""
    issuer = FakeIssuer()
    profiles = []
    for index, hunter_id in enumerate(STALE_IDS):
        old_key = f"AIzaOld{index}"
        issuer.add_existing(old_key, f"Hunter{index}-Mage-{hunter_id[:8]}")
        profiles.append(_profile(hunter_id, f"Hunter{index}", now - timedelta(days=45), old_key))

    issuer.add_existing("AIzaActive", f"Active-Mage-{ACTIVE_ID[:8]}")
    profiles.append(_profile(ACTIVE_ID, "Active", now - timedelta(days=2), "AIzaActive"))

    issuer.add_existing("AIzaPremium", f"Premium-Mage-{PREMIUM_ID[:8]}")
    profiles.append(_profile(PREMIUM_ID, "Premium", now - timedelta(days=90), "AIzaPremium", tier="s_rank"))

    return InMemoryProfileStore(profiles), issuer


@pytest.fixture
def service(key_config, world):
    store, issuer = world
    return KeyRotationService(key_config, store=store, issuer_factory=lambda config: issuer)


# =============================================================================
# Batch
# =============================================================================

class TestRotateInactiveKeys:

    def test_rotates_every_stale_free_hunter(self, service, world, now):
        store, issuer = world

        report = service.rotate_inactive_keys(now=now)

        assert report.success is True
        assert report.processed_count == 3
        assert report.rotated_count == 3
        assert report.message == "Processed 3 hunters, rotated 3 keys"
        assert {result.hunter_id for result in report.results} == set(STALE_IDS)
        assert all(result.old_key_revoked for result in report.results)

    def test_persists_new_key_and_resets_usage_only(self, service, world, now):
        store, issuer = world
        service.rotate_inactive_keys(now=now)

        row = store.profiles[STALE_IDS[0]]
        new_key = next(key for key in issuer.created if STALE_IDS[0][:8] in key.display_name)
        assert decrypt_secret(row["gemini_key_enc"], MASTER_KEY) == new_key.key_string
        assert row["gemini_usage_tokens"] == 0
        assert row["gemini_budget_cents"] == 320
        assert new_key.display_name == f"Hunter0-Mage-rotated-{STALE_IDS[0][:8]}"

    def test_old_keys_deleted_new_keys_kept(self, service, world, now):
        store, issuer = world
        service.rotate_inactive_keys(now=now)

        remaining = {key.key_string for key in issuer.keys}
        assert not remaining & {"AIzaOld0", "AIzaOld1", "AIzaOld2"}
        assert {key.key_string for key in issuer.created} <= remaining
        assert {"AIzaActive", "AIzaPremium"} <= remaining

    def test_skips_active_and_premium_hunters(self, service, world, now):
        store, issuer = world
        service.rotate_inactive_keys(now=now)

        assert decrypt_secret(store.profiles[ACTIVE_ID]["gemini_key_enc"], MASTER_KEY) == "AIzaActive"
        assert decrypt_secret(store.profiles[PREMIUM_ID]["gemini_key_enc"], MASTER_KEY) == "AIzaPremium"

    def test_one_failure_does_not_abort_batch(self, service, world, now):
        store, issuer = world
        issuer.fail_create_for.add(STALE_IDS[1])
        before = store.profiles[STALE_IDS[1]]["gemini_key_enc"]

        report = service.rotate_inactive_keys(now=now)

        assert report.processed_count == 3
        assert report.rotated_count == 2
        assert report.message == "Processed 3 hunters, rotated 2 keys"

        failed = next(result for result in report.results if result.hunter_id == STALE_IDS[1])
        assert failed.rotated is False
        assert failed.old_key_revoked is False
        assert failed.error == "Failed to create API key: HTTP 500"
        assert store.profiles[STALE_IDS[1]]["gemini_key_enc"] == before

    def test_undecryptable_key_is_a_per_hunter_failure(self, service, world, now):
        store, issuer = world
        store.profiles[STALE_IDS[0]]["gemini_key_enc"] = encrypt_secret("x", "some-other-master-key")

        report = service.rotate_inactive_keys(now=now)

        failed = next(result for result in report.results if result.hunter_id == STALE_IDS[0])
        assert failed.rotated is False
        assert failed.error.startswith("Decryption failed")
        assert report.rotated_count == 2

    def test_persist_failure_revokes_new_key(self, service, world, now):
        store, issuer = world
        store.fail_updates_for.add(STALE_IDS[2])

        report = service.rotate_inactive_keys(now=now)

        failed = next(result for result in report.results if result.hunter_id == STALE_IDS[2])
        assert failed.rotated is False
        orphan = next(key for key in issuer.created if STALE_IDS[2][:8] in key.display_name)
        assert orphan.name in issuer.deleted
        assert "AIzaOld2" in {key.key_string for key in issuer.keys}

    def test_revocation_failure_is_advisory(self, service, world, now):
        store, issuer = world
        issuer.fail_delete = True

        report = service.rotate_inactive_keys(now=now)

        assert report.rotated_count == 3
        assert all(result.rotated and not result.old_key_revoked for result in report.results)

    def test_no_candidates(self, key_config, issuer, now):
        store = InMemoryProfileStore()
        service = KeyRotationService(key_config, store=store, issuer_factory=lambda config: issuer)

        report = service.rotate_inactive_keys(now=now)

        assert report.success is True
        assert report.processed_count == 0
        assert report.message == "No inactive hunters found for key rotation"
        assert issuer.closed == 0

    def test_cutoff_uses_inactivity_threshold(self, google_cloud_settings, world, now):
        store, issuer = world
        config = KeyManagementConfig(
            google_cloud=google_cloud_settings,
            master_key=MASTER_KEY,
            inactivity_days=60,
        )
        service = KeyRotationService(config, store=store, issuer_factory=lambda config: issuer)

        report = service.rotate_inactive_keys(now=now)

        assert report.processed_count == 0
        assert ("fetch_rotation_candidates", now - timedelta(days=60)) in store.calls

    def test_missing_configuration_raises(self, world, now):
        store, issuer = world
        service = KeyRotationService(KeyManagementConfig(), store=store, issuer_factory=lambda config: issuer)

        with pytest.raises(ConfigError):
            service.rotate_inactive_keys(now=now)
        assert store.calls == []

    def test_store_failure_raises(self, service, world, now):
        store, issuer = world
        store.fail_queries = True

        with pytest.raises(SupabaseClientError):
            service.rotate_inactive_keys(now=now)
        assert issuer.created == []


# =============================================================================
# Helpers
# =============================================================================

class TestFindStaleKey:

    HUNTER = "abcdef12-0000-4000-8000-000000000000"

    def _key(self, name, key_string=None, display_name=""):
        return IssuedKey(name=name, key_string=key_string, display_name=display_name)

    def test_exact_key_string_wins(self):
        keys = [
            self._key("keys/label", display_name="Aria-Mage-abcdef12"),
            self._key("keys/exact", key_string="AIzaOld"),
        ]
        assert find_stale_key(keys, self.HUNTER, "AIzaOld").name == "keys/exact"

    def test_falls_back_to_label(self):
        keys = [
            self._key("keys/other", display_name="Bob-Mage-99999999"),
            self._key("keys/label", display_name="Aria-Mage-abcdef12"),
        ]
        assert find_stale_key(keys, self.HUNTER, "AIzaOld").name == "keys/label"

    def test_never_returns_excluded_key(self):
        keys = [self._key("keys/new", display_name="Aria-Mage-rotated-abcdef12")]
        assert find_stale_key(keys, self.HUNTER, "AIzaOld", exclude_name="keys/new") is None

    def test_no_match(self):
        keys = [self._key("keys/other", display_name="Bob-Mage-99999999")]
        assert find_stale_key(keys, self.HUNTER, "AIzaOld") is None


class TestVerifyCronToken:

    def test_matching_token(self):
        assert verify_cron_token("Bearer s3cret", "s3cret") is True

    def test_wrong_token(self):
        assert verify_cron_token("Bearer nope", "s3cret") is False

    def test_missing_scheme(self):
        assert verify_cron_token("s3cret", "s3cret") is False

    def test_missing_header(self):
        assert verify_cron_token(None, "s3cret") is False

    def test_unconfigured_token_rejects_everything(self):
        assert verify_cron_token("Bearer ", None) is False
        assert verify_cron_token("Bearer None", None) is False
