"""Signed session tokens issued after a successful sign-in."""
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from core.errors import InvalidSessionError, IssuanceError, SessionExpiredError
from schemas.user import UserIdentity

HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
DEFAULT_SESSION_TTL = timedelta(days=30)


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token."""

    user_id: int
    email: str
    issued_at: datetime
    expires_at: datetime

    def to_payload(self) -> dict[str, int | str]:
        """JWT payload for these claims."""
        return {
            "id": self.user_id,
            "email": self.email,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }


@dataclass(frozen=True)
class IssuedSession:
    """A signed session token and the claims it was built from."""

    token: str
    claims: SessionClaims


class SessionIssuer:
    """
    Mints and verifies session tokens signed with a server-held secret.

    Tokens are stateless: each one stays valid until its own expiry and there
    is no revocation list.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_SESSION_TTL,
    ) -> None:
        if not secret:
            raise IssuanceError("Session signing secret is not configured")
        if algorithm not in HMAC_ALGORITHMS:
            raise IssuanceError(f"Unsupported session signing algorithm: {algorithm}")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    def issue(self, user: UserIdentity, issued_at: datetime | None = None) -> IssuedSession:
        """Sign a token for `user` expiring `ttl` after `issued_at` (default: now)."""
        issued_at = (issued_at or datetime.now(UTC)).replace(microsecond=0)
        claims = SessionClaims(
            user_id=user.id,
            email=user.email,
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )
        try:
            token = jwt.encode(claims.to_payload(), self._secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise IssuanceError("Failed to sign session token") from e
        return IssuedSession(token=token, claims=claims)

    def verify(self, token: str) -> SessionClaims:
        """
        Decode a session token issued by this service.

        Raises:
            SessionExpiredError: The token is past its expiry.
            InvalidSessionError: Signature, format or claims are invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["id", "email", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise SessionExpiredError("Session token has expired") from e
        except jwt.PyJWTError as e:
            raise InvalidSessionError(f"Invalid session token: {type(e).__name__}") from e

        user_id, email = payload["id"], payload["email"]
        if not isinstance(user_id, int) or not isinstance(email, str):
            raise InvalidSessionError("Invalid session token: malformed claims")
        return SessionClaims(
            user_id=user_id,
            email=email,
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )
