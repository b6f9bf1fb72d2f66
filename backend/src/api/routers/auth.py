"""Sign-in endpoints for federated identity providers."""
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_sign_in_service
from core.providers import Provider
from schemas.auth import (
    ErrorResponse,
    SessionResponse,
    SignInRequest,
    SignInResponse,
    UserResponse,
)
from schemas.user import UserIdentity
from services.sign_in import SignInService

router = APIRouter(prefix="/api/auth", tags=["auth"])

SIGN_IN_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Missing or malformed idToken"},
    401: {"model": ErrorResponse, "description": "Provider token rejected"},
    500: {"model": ErrorResponse, "description": "Storage or signing failure"},
}


async def _sign_in(
    provider: Provider,
    data: SignInRequest | None,
    db: AsyncSession,
    service: SignInService,
) -> SignInResponse:
    result = await service.sign_in(db, provider, data.id_token if data else None)
    return SignInResponse(
        token=result.session.token,
        user=UserResponse(id=result.user.id, email=result.user.email),
    )


@router.post("/google", response_model=SignInResponse, responses=SIGN_IN_RESPONSES)
async def google_sign_in(
    data: SignInRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    service: SignInService = Depends(get_sign_in_service),
) -> SignInResponse:
    """Exchange a Google ID token for a session token."""
    return await _sign_in(Provider.GOOGLE, data, db, service)


@router.post("/apple", response_model=SignInResponse, responses=SIGN_IN_RESPONSES)
async def apple_sign_in(
    data: SignInRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    service: SignInService = Depends(get_sign_in_service),
) -> SignInResponse:
    """Exchange a Sign in with Apple identity token for a session token."""
    return await _sign_in(Provider.APPLE, data, db, service)


@router.get(
    "/me",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid session token"}},
)
async def current_session(
    current_user: UserIdentity = Depends(get_current_user),
) -> SessionResponse:
    """Return the user the bearer session token was issued to."""
    return SessionResponse(user=UserResponse(id=current_user.id, email=current_user.email))
