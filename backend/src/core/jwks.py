"""Provider signing keys (JWKS) fetched over HTTP with a Redis-backed cache."""
import json
import logging
import re

import httpx
import jwt

from core.errors import ProviderUnavailableError
from core.providers import Provider
from core.redis import get_redis_client

logger = logging.getLogger(__name__)

MAX_AGE_PATTERN = re.compile(r"max-age=(\d+)")


def cache_ttl_from_headers(headers: httpx.Headers, default: int) -> int:
    """
    Derive a cache TTL (seconds) from a JWKS response.

    Providers advertise how long their key set stays valid via
    Cache-Control max-age. Falls back to `default` when absent.
    """
    match = MAX_AGE_PATTERN.search(headers.get("cache-control", ""))
    if match is None:
        return default
    return int(match.group(1))


def parse_key_set(document: str | bytes) -> jwt.PyJWKSet | None:
    """Parse a JWKS document, returning None if it holds no usable keys."""
    try:
        data = json.loads(document)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return jwt.PyJWKSet.from_dict(data)
    except jwt.PyJWTError:
        return None


def find_key(key_set: jwt.PyJWKSet, kid: str | None) -> jwt.PyJWK | None:
    """Return the key with the given key id, or None."""
    if kid is None:
        return None
    for key in key_set.keys:
        if key.key_id == kid:
            return key
    return None


class ProviderKeySet:
    """
    Signing keys published by one identity provider.

    Keys are looked up by `kid`. A cached key set that lacks the requested
    `kid` is refetched once, since providers rotate keys ahead of cache expiry.
    Network calls are bounded by `timeout` and never hold a lock.
    """

    def __init__(
        self,
        provider: Provider,
        jwks_url: str,
        *,
        timeout: float,
        cache_ttl_seconds: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider
        self._jwks_url = jwks_url
        self._timeout = timeout
        self._cache_ttl_seconds = cache_ttl_seconds
        self._transport = transport

    @property
    def cache_key(self) -> str:
        """Redis key holding this provider's JWKS document."""
        return f"jwks:{self._provider.value}"

    async def get_signing_key(self, kid: str | None) -> jwt.PyJWK | None:
        """Return the signing key for `kid`, or None if the provider does not publish it."""
        key_set, from_cache = await self._load(refresh=False)
        key = find_key(key_set, kid)
        if key is None and from_cache:
            key_set, _ = await self._load(refresh=True)
            key = find_key(key_set, kid)
        return key

    async def _load(self, *, refresh: bool) -> tuple[jwt.PyJWKSet, bool]:
        """Load the key set from cache (unless refreshing) or the provider."""
        redis_client = get_redis_client()
        if not refresh and redis_client is not None:
            cached = await redis_client.get(self.cache_key)
            if cached is not None:
                key_set = parse_key_set(cached)
                if key_set is not None:
                    return key_set, True
                logger.warning("jwks_cache_unusable", extra={"provider": self._provider.value})
                await redis_client.delete(self.cache_key)

        document, ttl = await self._fetch()
        key_set = parse_key_set(document)
        if key_set is None:
            raise ProviderUnavailableError(self._provider, "key set has no usable keys")
        if redis_client is not None and ttl > 0:
            await redis_client.setex(self.cache_key, ttl, document)
        return key_set, False

    async def _fetch(self) -> tuple[str, int]:
        """Fetch the JWKS document and its cache TTL from the provider."""
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                response = await client.get(self._jwks_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "jwks_fetch_failed",
                extra={"provider": self._provider.value, "error": type(e).__name__},
            )
            raise ProviderUnavailableError(self._provider, type(e).__name__) from e
        return response.text, cache_ttl_from_headers(response.headers, self._cache_ttl_seconds)
