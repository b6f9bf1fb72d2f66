"""
Verification of provider-issued identity tokens.

One verifier class per identity provider. Each checks the token's RS256
signature against the provider's published keys, its audience against the
configured client id, its issuer, and its expiry, then extracts the email.
"""
import logging
from dataclasses import dataclass
from typing import Any, ClassVar

import jwt

from core.errors import InvalidAssertionError
from core.jwks import ProviderKeySet
from core.providers import Provider

logger = logging.getLogger(__name__)

SIGNING_ALGORITHMS = ["RS256"]
REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud"]


@dataclass(frozen=True)
class VerifiedAssertion:
    """Email attested by a provider token that passed verification."""

    subject_email: str
    provider: Provider


def _is_false(value: Any) -> bool:
    """Apple sends email_verified as a string, Google as a boolean."""
    return value is False or (isinstance(value, str) and value.lower() == "false")


class IdentityVerifier:
    """Base verifier for OpenID Connect identity tokens."""

    provider: ClassVar[Provider]
    issuers: ClassVar[tuple[str, ...]]

    def __init__(self, audience: str, key_set: ProviderKeySet) -> None:
        self._audience = audience
        self._key_set = key_set

    async def verify(self, id_token: str) -> VerifiedAssertion:
        """
        Verify `id_token` and return the asserted email.

        Raises:
            InvalidAssertionError: Any signature, audience, issuer, expiry or
                email check failed.
            ProviderUnavailableError: The provider's keys could not be fetched.
        """
        if not self._audience:
            # PyJWT skips the audience check for an empty audience
            logger.error(
                "provider_audience_not_configured",
                extra={"provider": self.provider.value},
            )
            raise InvalidAssertionError(self.provider, "audience not configured")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as e:
            raise InvalidAssertionError(self.provider, "malformed token") from e

        key = await self._key_set.get_signing_key(header.get("kid"))
        if key is None:
            raise InvalidAssertionError(self.provider, "unknown signing key")

        try:
            claims = jwt.decode(
                id_token,
                key.key,
                algorithms=SIGNING_ALGORITHMS,
                audience=self._audience,
                issuer=self.issuers,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as e:
            raise InvalidAssertionError(self.provider, type(e).__name__) from e

        return VerifiedAssertion(
            subject_email=self.extract_email(claims),
            provider=self.provider,
        )

    def extract_email(self, claims: dict[str, Any]) -> str:
        """Return the verified email from decoded claims."""
        email = claims.get("email")
        if not isinstance(email, str) or not email:
            raise InvalidAssertionError(self.provider, "email claim missing")
        if _is_false(claims.get("email_verified")):
            raise InvalidAssertionError(self.provider, "email not verified")
        return email


class GoogleIdentityVerifier(IdentityVerifier):
    """Verifies Google Sign-In ID tokens."""

    provider = Provider.GOOGLE
    issuers = ("accounts.google.com", "https://accounts.google.com")


class AppleIdentityVerifier(IdentityVerifier):
    """
    Verifies Sign in with Apple identity tokens.

    Tokens without an `email` claim are rejected; `email_verified` is a flag,
    never a substitute for the address.
    """

    provider = Provider.APPLE
    issuers = ("https://appleid.apple.com",)
