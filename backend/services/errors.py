"""
Exception hierarchy for credential, provider and storage failures.

Exception Hierarchy:
    StatsHubError (base)
    ├── ProviderError
    │   ├── TransientProviderError  - network failure, 5xx, rate limit (recoverable)
    │   ├── AuthError               - revoked/invalid token, malformed refresh response
    │   └── ProviderDataError       - stats response has unexpected structure
    ├── ReauthRequired              - no usable credential, user must re-authorize
    ├── CredentialCorruptError      - stored payload cannot be decrypted or parsed
    ├── UnsupportedPlatformError    - no provider registered for the platform
    └── StorageError                - database read/write failed
"""


class StatsHubError(Exception):
    """Base exception for all Stats Hub errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ProviderError(StatsHubError):
    """A call to a platform provider failed."""

    def __init__(self, message: str, details: str | None = None, platform: str | None = None):
        super().__init__(message, details)
        self.platform = platform


class TransientProviderError(ProviderError):
    """
    Provider unreachable, returned 5xx, or rate-limited the request.

    Never evicts a credential when raised from a stats fetch.
    """

    def __init__(
        self,
        message: str,
        details: str | None = None,
        platform: str | None = None,
        status_code: int | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, details, platform)
        self.status_code = status_code
        self.retry_after = retry_after


class AuthError(ProviderError):
    """Provider rejected the token (revoked or invalid refresh token)."""


class ProviderDataError(ProviderError):
    """Provider response did not have the expected structure."""


class ReauthRequired(StatsHubError):
    """No usable credential exists; the authorization flow must be re-run."""

    def __init__(self, user_id: str, platform: str, details: str | None = None):
        super().__init__(f"Re-authorization required for {platform}", details)
        self.user_id = user_id
        self.platform = platform


class CredentialCorruptError(StatsHubError):
    """Stored credential payload could not be decrypted or parsed."""

    def __init__(self, user_id: str, platform: str, details: str | None = None):
        super().__init__(f"Stored {platform} credential is unreadable", details)
        self.user_id = user_id
        self.platform = platform


class UnsupportedPlatformError(StatsHubError):
    """No provider is registered under the requested platform name."""

    def __init__(self, platform: str):
        super().__init__(f"Unsupported platform: {platform}")
        self.platform = platform


class StorageError(StatsHubError):
    """Reading from or writing to the database failed."""
