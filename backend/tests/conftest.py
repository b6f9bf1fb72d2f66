"""
Shared fixtures.

Provider key servers are simulated with httpx.MockTransport serving a JWKS
built from RSA keys generated per session; identity tokens are signed with
those keys. Storage is a SQLite file per test.
"""
import json
import os
import tempfile
import time
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

# Settings are read when db.session / api.main are imported
_TEST_DIR = Path(tempfile.mkdtemp(prefix="eyemax-auth-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'app.db'}"
os.environ["JWT_SECRET"] = "test-session-secret-with-at-least-32-chars"
os.environ["GOOGLE_CLIENT_ID"] = "test-client.apps.googleusercontent.com"
os.environ["APPLE_CLIENT_ID"] = "com.example.eyemax"
os.environ["REDIS_ENABLED"] = "false"

import httpx  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jwt.algorithms import RSAAlgorithm  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from api.dependencies import get_async_session, get_sign_in_service  # noqa: E402
from api.main import app  # noqa: E402
from core.identity import AppleIdentityVerifier, GoogleIdentityVerifier  # noqa: E402
from core.jwks import ProviderKeySet  # noqa: E402
from core.providers import Provider  # noqa: E402
from core.redis import set_redis_client  # noqa: E402
from core.session_tokens import SessionIssuer  # noqa: E402
from db.session import build_engine, build_session_factory  # noqa: E402
from models import Base  # noqa: E402
from services.sign_in import SignInService  # noqa: E402

GOOGLE_CLIENT_ID = os.environ["GOOGLE_CLIENT_ID"]
APPLE_CLIENT_ID = os.environ["APPLE_CLIENT_ID"]
TEST_JWT_SECRET = os.environ["JWT_SECRET"]
GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
APPLE_JWKS_URL = "https://appleid.apple.com/auth/keys"
KEY_ID = "test-key-1"


def public_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> dict[str, Any]:
    """JWK (public part) for an RSA private key."""
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


class ProviderKeyServer:
    """In-memory JWKS endpoint for one or more providers."""

    def __init__(self) -> None:
        self.keys: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: str | None = None
        self.max_age: int | None = None

    def publish(self, private_key: rsa.RSAPrivateKey, kid: str) -> None:
        self.keys.append(public_jwk(private_key, kid))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        headers = {}
        if self.max_age is not None:
            headers["cache-control"] = f"public, max-age={self.max_age}"
        if self.body is not None:
            return httpx.Response(self.status_code, text=self.body, headers=headers)
        return httpx.Response(self.status_code, json={"keys": self.keys}, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class IdentityTokenFactory:
    """Signs Google/Apple shaped identity tokens with test keys."""

    def __init__(self, private_key: rsa.RSAPrivateKey, kid: str) -> None:
        self._private_key = private_key
        self._kid = kid

    def google(self, **overrides: Any) -> str:
        claims = {
            "iss": "https://accounts.google.com",
            "aud": GOOGLE_CLIENT_ID,
            "sub": "110169484474386276334",
            "email": "user@example.com",
            "email_verified": True,
        }
        return self._sign(claims, overrides)

    def apple(self, **overrides: Any) -> str:
        claims = {
            "iss": "https://appleid.apple.com",
            "aud": APPLE_CLIENT_ID,
            "sub": "001234.abcdef0123456789.1234",
            "email": "user@privaterelay.appleid.com",
            "email_verified": "true",
        }
        return self._sign(claims, overrides)

    def _sign(self, claims: dict[str, Any], overrides: dict[str, Any]) -> str:
        """Apply overrides (None removes a claim) and sign."""
        key = overrides.pop("signing_key", self._private_key)
        kid = overrides.pop("kid", self._kid)
        now = int(time.time())
        payload = {"iat": now, "exp": now + 3600, **claims, **overrides}
        payload = {name: value for name, value in payload.items() if value is not None}
        return jwt.encode(payload, key, algorithm="RS256", headers={"kid": kid})


def build_service(
    key_server: ProviderKeyServer,
    *,
    verify_timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SignInService:
    """SignInService whose key sets are served by `key_server`."""
    transport = transport or key_server.transport

    def key_set(provider: Provider, url: str) -> ProviderKeySet:
        return ProviderKeySet(
            provider, url, timeout=2.0, cache_ttl_seconds=3600, transport=transport,
        )

    return SignInService(
        {
            Provider.GOOGLE: GoogleIdentityVerifier(
                GOOGLE_CLIENT_ID, key_set(Provider.GOOGLE, GOOGLE_JWKS_URL),
            ),
            Provider.APPLE: AppleIdentityVerifier(
                APPLE_CLIENT_ID, key_set(Provider.APPLE, APPLE_JWKS_URL),
            ),
        },
        SessionIssuer(TEST_JWT_SECRET),
        verify_timeout=verify_timeout,
    )


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    """RSA key the simulated providers sign with."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rogue_key() -> rsa.RSAPrivateKey:
    """RSA key no provider publishes."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(autouse=True)
def no_redis() -> Generator[None]:
    """Tests run without a shared Redis client unless they install one."""
    set_redis_client(None)
    yield
    set_redis_client(None)


@pytest.fixture
def key_server(signing_key: rsa.RSAPrivateKey) -> ProviderKeyServer:
    server = ProviderKeyServer()
    server.publish(signing_key, KEY_ID)
    return server


@pytest.fixture
def tokens(signing_key: rsa.RSAPrivateKey) -> IdentityTokenFactory:
    return IdentityTokenFactory(signing_key, KEY_ID)


@pytest.fixture
def sign_in_service(key_server: ProviderKeyServer) -> SignInService:
    return build_service(key_server)


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """SQLite engine with the schema created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    sign_in_service: SignInService,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app, backed by the test database and key server."""
    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[get_sign_in_service] = lambda: sign_in_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
