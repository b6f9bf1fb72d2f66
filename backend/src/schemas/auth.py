"""Pydantic schemas for sign-in endpoints."""
from pydantic import BaseModel, ConfigDict, Field


class SignInRequest(BaseModel):
    """Body of POST /api/auth/{provider}."""

    model_config = ConfigDict(populate_by_name=True)

    # Optional so a missing field gets the 400 response rather than a 422
    id_token: str | None = Field(default=None, alias="idToken")


class UserResponse(BaseModel):
    """User fields returned to clients."""

    id: int
    email: str


class SignInResponse(BaseModel):
    """Successful sign-in."""

    ok: bool = True
    token: str
    user: UserResponse


class SessionResponse(BaseModel):
    """Authenticated session introspection."""

    ok: bool = True
    user: UserResponse


class ErrorResponse(BaseModel):
    """Failure envelope for 401/500 responses."""

    ok: bool = False
    error: str
