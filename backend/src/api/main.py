"""FastAPI application entry point."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_sign_in_service
from api.routers import auth, health
from core.config import get_settings
from core.errors import (
    InvalidAssertionError,
    InvalidSessionError,
    IssuanceError,
    MissingCredentialError,
    PersistenceError,
    ProviderUnavailableError,
)
from core.providers import Provider
from core.redis import RedisClient, set_redis_client

logger = logging.getLogger(__name__)

SIGN_IN_PATHS = {f"{auth.router.prefix}/{provider.value}": provider for provider in Provider}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: ARG001
    """Validate signing configuration and manage the Redis connection."""
    settings = get_settings()
    # Raises IssuanceError on a bad signing configuration
    get_sign_in_service()

    redis_client = RedisClient(settings.redis_url, enabled=settings.redis_enabled)
    await redis_client.connect()
    set_redis_client(redis_client)
    try:
        yield
    finally:
        await redis_client.close()
        set_redis_client(None)


async def missing_credential_handler(
    request: Request, exc: MissingCredentialError,  # noqa: ARG001
) -> JSONResponse:
    """Request carried no idToken."""
    logger.info(
        "sign_in_rejected",
        extra={"provider": exc.provider.value, "failure": "missing_credential"},
    )
    return JSONResponse(status_code=400, content={"error": "Missing idToken"})


async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """
    Sign-in bodies that fail to parse get the bad-input response.

    Covers invalid JSON, a non-object body, and a non-string idToken. Other
    routes keep FastAPI's default 422 response.
    """
    provider = SIGN_IN_PATHS.get(request.url.path)
    if provider is None:
        return await request_validation_exception_handler(request, exc)
    logger.info(
        "sign_in_rejected",
        extra={"provider": provider.value, "failure": "malformed_body"},
    )
    return JSONResponse(status_code=400, content={"error": "Missing idToken"})


async def invalid_assertion_handler(
    request: Request,  # noqa: ARG001
    exc: InvalidAssertionError | ProviderUnavailableError,
) -> JSONResponse:
    """Provider token rejected or could not be checked. Never says which check failed."""
    failure = (
        "invalid_assertion" if isinstance(exc, InvalidAssertionError) else "provider_unavailable"
    )
    logger.warning(
        "sign_in_failed",
        extra={"provider": exc.provider.value, "failure": failure, "reason": exc.reason},
    )
    return JSONResponse(
        status_code=401,
        content={"ok": False, "error": f"Invalid {exc.provider.label} token"},
    )


async def internal_error_handler(
    request: Request,
    exc: PersistenceError | IssuanceError,
) -> JSONResponse:
    """Storage or signing failure; no session was issued."""
    event = "sign_in_failed" if request.url.path in SIGN_IN_PATHS else "session_lookup_failed"
    failure = "persistence" if isinstance(exc, PersistenceError) else "issuance"
    logger.error(event, extra={"failure": failure, "error": str(exc)})
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "Internal server error"},
    )


async def invalid_session_handler(
    request: Request,  # noqa: ARG001
    exc: InvalidSessionError,
) -> JSONResponse:
    """Bearer session token missing, expired, or invalid."""
    logger.info("session_rejected", extra={"error": str(exc)})
    return JSONResponse(
        status_code=401,
        content={"ok": False, "error": "Invalid session token"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_application() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="EyeMax Auth API",
        description="Google and Apple sign-in issuing service session tokens.",
        version="0.3.1",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(MissingCredentialError, missing_credential_handler)
    app.add_exception_handler(InvalidAssertionError, invalid_assertion_handler)
    app.add_exception_handler(ProviderUnavailableError, invalid_assertion_handler)
    app.add_exception_handler(PersistenceError, internal_error_handler)
    app.add_exception_handler(IssuanceError, internal_error_handler)
    app.add_exception_handler(InvalidSessionError, invalid_session_handler)

    app.include_router(health.router)
    app.include_router(auth.router)

    return app


app = create_application()
