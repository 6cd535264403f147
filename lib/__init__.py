# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable building blocks:
# - encryption.py: AES-256-GCM encryption of secrets at rest
# - google_cloud.py: Service-account authenticated Google Cloud API Keys client
# - supabase_client.py: Typed Supabase wrapper for hunter profiles and budgets
# - utils.py: Shared utilities (error base class, ID normalization)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.encryption import (
    DecryptionError,
    decrypt_secret,
    encrypt_secret,
    generate_secure_token,
    validate_encrypted_secret,
)
from lib.google_cloud import (
    AuthError,
    GoogleCloudConfig,
    GoogleCloudKeyClient,
    IssuedKey,
    MissingKeyError,
    ProvisioningError,
    RevocationError,
    validate_config,
)
from lib.supabase_client import StoreErrorKind, SupabaseClient, SupabaseClientError
from lib.utils import ApplicationError, ConfigError, normalize_uuid, short_id

__all__ = [
    # Encryption
    "DecryptionError",
    "decrypt_secret",
    "encrypt_secret",
    "generate_secure_token",
    "validate_encrypted_secret",
    # Google Cloud
    "AuthError",
    "GoogleCloudConfig",
    "GoogleCloudKeyClient",
    "IssuedKey",
    "MissingKeyError",
    "ProvisioningError",
    "RevocationError",
    "validate_config",
    # Supabase
    "StoreErrorKind",
    "SupabaseClient",
    "SupabaseClientError",
    # Utils
    "ApplicationError",
    "ConfigError",
    "normalize_uuid",
    "short_id",
]
