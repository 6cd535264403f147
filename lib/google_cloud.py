# =============================================================================
# lib/google_cloud.py - Google Cloud API Keys Client
# =============================================================================
# Mediates between the service and the Google Cloud API Keys service, which
# requires service-account authentication:
#
#   1. Build an RS256-signed JWT assertion with the service account key
#   2. Exchange it at the OAuth2 token endpoint for a bearer access token
#   3. Create / list / get / delete API keys in the issuing project
#
# Issued keys are restricted to the Gemini (Generative Language) API and are
# labelled with a prefix of the owning hunter's ID for traceability.
#
# Usage:
#   config = validate_config({...})
#   with GoogleCloudKeyClient(config) as client:
#       key = client.create_api_key("Aria-Scholar", hunter_id)
# =============================================================================

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from lib.utils import ApplicationError, ConfigError, short_id

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
API_KEYS_BASE_URL = "https://apikeys.googleapis.com/v2"

# Service every issued key is restricted to
GEMINI_SERVICE = "generativelanguage.googleapis.com"

ASSERTION_LIFETIME_SECONDS = 3600
# Refresh cached tokens this long before they actually expire
TOKEN_EXPIRY_MARGIN_SECONDS = 60
DEFAULT_TIMEOUT_SECONDS = 30.0

# keys.create answers with a long-running operation that may still be running
OPERATION_POLL_INTERVAL_SECONDS = 1.0
OPERATION_POLL_ATTEMPTS = 10

REQUIRED_FIELDS = ("project_id", "service_account_email", "private_key", "private_key_id")


# =============================================================================
# Errors
# =============================================================================

class GoogleCloudError(ApplicationError):
    """Base error for API Keys service calls."""

    def __init__(
        self,
        message: str,
        code: str = "GOOGLE_CLOUD_ERROR",
        status_code: int | None = None,
        body: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            message,
            code=code,
            suggestion=suggestion,
            details={"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body


class AuthError(GoogleCloudError):
    """The service-account credential exchange failed."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(
            message,
            code="AUTH_ERROR",
            status_code=status_code,
            body=body,
            suggestion="Check the service account email, private key and key ID",
        )


class ProvisioningError(GoogleCloudError):
    """An API Keys request (create or list) was rejected or did not complete."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(
            message,
            code="PROVISIONING_ERROR",
            status_code=status_code,
            body=body,
            suggestion="Check the service account has the API Keys Admin role on the project",
        )


class MissingKeyError(ProvisioningError):
    """Key creation succeeded at the transport level but returned no key string."""

    def __init__(self, resource_name: str | None = None):
        super().__init__("API key creation succeeded but no key string returned")
        self.code = "MISSING_KEY"
        self.resource_name = resource_name


class RevocationError(GoogleCloudError):
    """Deleting an API key failed. Callers treat this as advisory."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message, code="REVOCATION_ERROR", status_code=status_code, body=body)


# =============================================================================
# Data Types
# =============================================================================

@dataclass(frozen=True)
class GoogleCloudConfig:
    """Service-account credentials for the issuing project."""

    project_id: str
    service_account_email: str
    private_key: str
    private_key_id: str

    def __repr__(self) -> str:
        # Keep the PEM out of logs and tracebacks
        return (
            f"GoogleCloudConfig(project_id={self.project_id!r}, "
            f"service_account_email={self.service_account_email!r}, "
            f"private_key_id={self.private_key_id!r})"
        )


@dataclass(frozen=True)
class IssuedKey:
    """A Google Cloud API key resource."""

    name: str
    key_string: str | None = None
    uid: str | None = None
    display_name: str = ""
    restrictions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "IssuedKey":
        return cls(
            name=data.get("name", ""),
            key_string=data.get("keyString"),
            uid=data.get("uid"),
            display_name=data.get("displayName") or "",
            restrictions=data.get("restrictions") or {},
        )

    def __repr__(self) -> str:
        return f"IssuedKey(name={self.name!r}, display_name={self.display_name!r})"


def _is_operation(data: Mapping[str, Any]) -> bool:
    return "response" in data or "done" in data or str(data.get("name", "")).startswith("operations/")


def validate_config(partial: Mapping[str, str | None]) -> GoogleCloudConfig:
    """
    Build a GoogleCloudConfig, failing fast on every missing field at once.

    Private keys pasted into environment variables often carry literal
    ``\\n`` sequences; these are turned back into real newlines.

    Raises:
        ConfigError: Listing all missing required fields in one message
    """
    missing = [name for name in REQUIRED_FIELDS if not partial.get(name)]
    if missing:
        raise ConfigError(
            f"Missing required Google Cloud config: {', '.join(missing)}",
            missing=missing,
        )

    return GoogleCloudConfig(
        project_id=partial["project_id"],
        service_account_email=partial["service_account_email"],
        private_key=partial["private_key"].replace("\\n", "\n"),
        private_key_id=partial["private_key_id"],
    )


# =============================================================================
# Client
# =============================================================================

class GoogleCloudKeyClient:
    """
    Client for the Google Cloud API Keys service.

    One instance is created per provisioning call or rotation batch. The
    access token is cached on the instance until shortly before it expires,
    so a batch does not re-run the credential exchange for every request.

    Args:
        config: Validated service-account configuration
        http_client: Optional pre-built httpx.Client (tests inject one with a
            MockTransport). When omitted the client owns and closes its own.
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        config: GoogleCloudConfig,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    def __enter__(self) -> "GoogleCloudKeyClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    @property
    def _keys_url(self) -> str:
        return f"{API_KEYS_BASE_URL}/projects/{self.config.project_id}/locations/global/keys"

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def build_assertion(self, now: int | None = None) -> str:
        """
        Build the signed JWT assertion for the token exchange.

        Raises:
            AuthError: If the private key cannot be used for RS256 signing
        """
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.config.service_account_email,
            "scope": CLOUD_PLATFORM_SCOPE,
            "aud": TOKEN_URI,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
            "iat": issued_at,
        }
        try:
            return jwt.encode(
                claims,
                self.config.private_key,
                algorithm="RS256",
                headers={"kid": self.config.private_key_id},
            )
        except JOSEError as e:
            raise AuthError(f"Failed to sign service account assertion: {e}") from e

    def get_access_token(self) -> str:
        """
        Exchange a signed assertion for an OAuth2 access token.

        Raises:
            AuthError: On non-success status or transport failure
        """
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        assertion = self.build_assertion()
        try:
            response = self._http.post(
                TOKEN_URI,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Token endpoint unreachable: {e}") from e

        if not response.is_success:
            raise AuthError(
                f"Failed to get access token: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise AuthError("Token endpoint response did not include an access_token")

        expires_in = int(payload.get("expires_in", ASSERTION_LIFETIME_SECONDS))
        self._access_token = token
        self._token_expires_at = time.time() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
        logger.debug(f"Obtained access token for {self.config.service_account_email}")
        return token

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.get_access_token()}"}

    # -------------------------------------------------------------------------
    # API Keys
    # -------------------------------------------------------------------------

    def create_api_key(self, display_name: str, hunter_id: str) -> IssuedKey:
        """
        Create a Gemini-restricted API key labelled for *hunter_id*.

        Raises:
            AuthError: If the credential exchange fails
            ProvisioningError: On non-success response, carrying status and body
            MissingKeyError: If the created key has no key string
        """
        body = {
            "displayName": f"{display_name}-{short_id(hunter_id)}",
            "restrictions": {
                "apiTargets": [
                    {"service": GEMINI_SERVICE, "methods": ["*"]},
                ],
            },
        }

        headers = self._auth_headers()
        try:
            response = self._http.post(self._keys_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ProvisioningError(f"API Keys service unreachable: {e}") from e

        if not response.is_success:
            raise ProvisioningError(
                f"Failed to create API key: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        data = response.json()
        if _is_operation(data):
            data = self._wait_for_operation(data, headers)

        issued = IssuedKey.from_api(data)
        if not issued.key_string:
            raise MissingKeyError(issued.name or None)

        logger.info(f"Created API key {issued.name} for hunter {short_id(hunter_id)}")
        return issued

    def _wait_for_operation(self, operation: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        """
        Poll a long-running create operation until it finishes.

        Returns the Key resource the operation wraps.

        Raises:
            ProvisioningError: If the operation fails, cannot be read, or is
                still running after OPERATION_POLL_ATTEMPTS polls
        """
        polls = 0
        while not operation.get("done") and "response" not in operation:
            if polls >= OPERATION_POLL_ATTEMPTS:
                raise ProvisioningError(
                    f"API key creation still running after {polls} polls: {operation.get('name')}"
                )
            time.sleep(OPERATION_POLL_INTERVAL_SECONDS)
            polls += 1

            try:
                response = self._http.get(f"{API_KEYS_BASE_URL}/{operation.get('name')}", headers=headers)
            except httpx.HTTPError as e:
                raise ProvisioningError(f"API Keys service unreachable: {e}") from e

            if not response.is_success:
                raise ProvisioningError(
                    f"Failed to read key creation operation: HTTP {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )
            operation = response.json()

        error = operation.get("error")
        if error:
            raise ProvisioningError(
                f"API key creation failed: {error.get('message', 'unknown error')}",
                body=str(error),
            )

        if polls:
            logger.debug(f"Operation {operation.get('name')} finished after {polls} polls")
        return operation.get("response") or {}

    def list_api_keys(self) -> list[IssuedKey]:
        """
        List every API key in the issuing project, following pagination.

        Raises:
            ProvisioningError: On non-success response
        """
        keys: list[IssuedKey] = []
        page_token: str | None = None
        headers = self._auth_headers()

        while True:
            params = {"pageToken": page_token} if page_token else None
            try:
                response = self._http.get(self._keys_url, headers=headers, params=params)
            except httpx.HTTPError as e:
                raise ProvisioningError(f"API Keys service unreachable: {e}") from e

            if not response.is_success:
                raise ProvisioningError(
                    f"Failed to list API keys: HTTP {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )

            data = response.json()
            keys.extend(IssuedKey.from_api(item) for item in data.get("keys", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(keys)} API keys in project {self.config.project_id}")
        return keys

    def get_api_key(self, resource_name: str) -> IssuedKey:
        """Fetch a single key resource by name."""
        headers = self._auth_headers()
        try:
            response = self._http.get(f"{API_KEYS_BASE_URL}/{resource_name}", headers=headers)
        except httpx.HTTPError as e:
            raise ProvisioningError(f"API Keys service unreachable: {e}") from e

        if not response.is_success:
            raise ProvisioningError(
                f"Failed to get API key: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return IssuedKey.from_api(response.json())

    def delete_api_key(self, resource_name: str) -> None:
        """
        Delete an API key by resource name.

        Raises:
            RevocationError: On non-success response or transport failure
        """
        headers = self._auth_headers()
        try:
            response = self._http.delete(f"{API_KEYS_BASE_URL}/{resource_name}", headers=headers)
        except httpx.HTTPError as e:
            raise RevocationError(f"API Keys service unreachable: {e}") from e

        if not response.is_success:
            raise RevocationError(
                f"Failed to delete API key: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        logger.info(f"Deleted API key {resource_name}")
