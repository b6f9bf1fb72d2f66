"""
Sign-in and session error types.

Each error maps to one HTTP response shape (see api.main). Messages are for
logs only; responses never say which check failed.
"""
from core.providers import Provider


class AuthError(Exception):
    """Base class for sign-in pipeline failures."""


class MissingCredentialError(AuthError):
    """Raised when the request carries no identity token."""

    def __init__(self, provider: Provider) -> None:
        self.provider = provider
        super().__init__("Missing idToken")


class InvalidAssertionError(AuthError):
    """Raised when a provider token fails signature, audience, issuer, expiry or email checks."""

    def __init__(self, provider: Provider, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"Invalid {provider.label} token: {reason}")


class ProviderUnavailableError(AuthError):
    """Raised when a provider's signing keys cannot be fetched in time."""

    def __init__(self, provider: Provider, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider.label} key server unavailable: {reason}")


class PersistenceError(AuthError):
    """Raised when the user table cannot be read or written."""


class IssuanceError(AuthError):
    """Raised when a session token cannot be signed safely."""


class InvalidSessionError(AuthError):
    """Raised when a session token fails verification."""


class SessionExpiredError(InvalidSessionError):
    """Raised when a session token is past its expiry."""
