"""FastAPI dependencies for injection."""
from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import InvalidSessionError
from db.session import get_async_session
from schemas.user import UserIdentity
from services.sign_in import SignInService, build_sign_in_service
from services.user_service import get_user

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_sign_in_service() -> SignInService:
    """
    Build the sign-in pipeline once per process.

    Raises IssuanceError if the signing configuration is unusable; called at
    startup so a misconfigured deployment never serves requests.
    """
    return build_sign_in_service(get_settings())


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    service: SignInService = Depends(get_sign_in_service),
    db: AsyncSession = Depends(get_async_session),
) -> UserIdentity:
    """
    Resolve the user from a `Authorization: Bearer <session token>` header.

    Raises InvalidSessionError (handled by exception handler) when the header
    is missing, the token fails verification, or the user no longer exists.
    """
    if credentials is None:
        raise InvalidSessionError("Missing bearer token")
    claims = service.issuer.verify(credentials.credentials)
    user = await get_user(db, claims.user_id)
    if user is None:
        raise InvalidSessionError("Session user not found")
    return user


__all__ = [
    "get_async_session",
    "get_current_user",
    "get_settings",
    "get_sign_in_service",
]
