"""Sign-in pipeline: verify provider token, reconcile user, issue session."""
import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from core.errors import MissingCredentialError, ProviderUnavailableError
from core.identity import (
    AppleIdentityVerifier,
    GoogleIdentityVerifier,
    IdentityVerifier,
    VerifiedAssertion,
)
from core.jwks import ProviderKeySet
from core.providers import Provider
from core.session_tokens import IssuedSession, SessionIssuer
from schemas.user import UserIdentity
from services.user_service import upsert_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignInResult:
    """Outcome of a successful sign-in."""

    session: IssuedSession
    user: UserIdentity


class SignInService:
    """Routes a sign-in request to the verifier for its provider and chains the pipeline."""

    def __init__(
        self,
        verifiers: Mapping[Provider, IdentityVerifier],
        issuer: SessionIssuer,
        verify_timeout: float,
    ) -> None:
        self._verifiers = dict(verifiers)
        self._issuer = issuer
        self._verify_timeout = verify_timeout

    @property
    def providers(self) -> frozenset[Provider]:
        """Providers this service can verify tokens for."""
        return frozenset(self._verifiers)

    @property
    def issuer(self) -> SessionIssuer:
        """Session issuer used for new sign-ins."""
        return self._issuer

    async def sign_in(
        self,
        db: AsyncSession,
        provider: Provider,
        id_token: str | None,
    ) -> SignInResult:
        """
        Sign in with a provider identity token.

        Steps short-circuit on the first failure: nothing touches storage
        unless verification succeeded, and no token is issued unless the
        upsert committed.

        Raises:
            MissingCredentialError: `id_token` is missing or blank.
            InvalidAssertionError: The provider token failed verification.
            ProviderUnavailableError: Provider keys unavailable or verification timed out.
            PersistenceError: The user upsert failed.
            IssuanceError: The session token could not be signed.
        """
        if not id_token or not id_token.strip():
            raise MissingCredentialError(provider)

        assertion = await self._verify(provider, id_token)
        user = await upsert_user(db, assertion.subject_email, provider)
        session = self._issuer.issue(user)
        logger.info("sign_in_succeeded", extra={"provider": provider.value, "user_id": user.id})
        return SignInResult(session=session, user=user)

    async def _verify(self, provider: Provider, id_token: str) -> VerifiedAssertion:
        verifier = self._verifiers[provider]
        try:
            async with asyncio.timeout(self._verify_timeout):
                return await verifier.verify(id_token)
        except TimeoutError as e:
            raise ProviderUnavailableError(provider, "verification timed out") from e


def build_sign_in_service(settings: Settings) -> SignInService:
    """Wire verifiers and the session issuer from settings."""
    def key_set(provider: Provider, jwks_url: str) -> ProviderKeySet:
        return ProviderKeySet(
            provider,
            jwks_url,
            timeout=settings.provider_timeout_seconds,
            cache_ttl_seconds=settings.jwks_cache_ttl_seconds,
        )

    verifiers: dict[Provider, IdentityVerifier] = {
        Provider.GOOGLE: GoogleIdentityVerifier(
            settings.google_client_id,
            key_set(Provider.GOOGLE, settings.google_jwks_url),
        ),
        Provider.APPLE: AppleIdentityVerifier(
            settings.apple_client_id,
            key_set(Provider.APPLE, settings.apple_jwks_url),
        ),
    }
    issuer = SessionIssuer(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(days=settings.session_ttl_days),
    )
    return SignInService(
        verifiers,
        issuer,
        verify_timeout=settings.verification_timeout_seconds,
    )
