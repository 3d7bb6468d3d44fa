"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tower.api.auth import router as auth_router
from tower.api.health import router as health_router
from tower.api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware
from tower.config import Settings, get_settings
from tower.models.auth import ErrorResponse
from tower.services.auth_service import AuthService
from tower.services.credential_store import PostgresCredentialStore
from tower.services.errors import AuthError, InternalFault, InvalidInput, Unauthorized
from tower.services.logging_service import configure_logging, get_logger
from tower.services.memory_store import MemoryCredentialStore, MemorySessionStore
from tower.services.password_hasher import PasswordHasher
from tower.services.session_store import PostgresSessionStore
from tower.services.token_service import AccessVerifier, TokenIssuer


def build_auth_service(settings: Settings) -> tuple[AuthService, AccessVerifier]:
    """Wire stores, hasher, issuer and verifier from settings.

    The signing secret is read here once and handed to the issuer and
    verifier explicitly.
    """
    if settings.storage_backend == "memory":
        credentials = MemoryCredentialStore()
        sessions = MemorySessionStore(credentials)
    else:
        credentials = PostgresCredentialStore()
        sessions = PostgresSessionStore()

    issuer = TokenIssuer(
        settings.jwt_secret,
        access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )
    auth_service = AuthService(
        credentials=credentials,
        sessions=sessions,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        issuer=issuer,
    )
    return auth_service, AccessVerifier(settings.jwt_secret)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    logger = get_logger("main")

    if settings.jwt_secret == Settings.model_fields["jwt_secret"].default:
        logger.warning("default_jwt_secret_in_use")

    database_started = False
    if settings.storage_backend == "postgres":
        try:
            from tower.database import init_database, run_migrations

            await init_database()
            await run_migrations()
            database_started = True
            logger.info("database_initialized")
        except Exception as e:
            logger.warning(
                "database_initialization_failed",
                error=str(e),
                note="Continuing without database - auth requests will fail with 500",
            )

    logger.info(
        "application_started",
        storage_backend=settings.storage_backend,
        log_level=settings.log_level,
    )

    yield

    if database_started:
        from tower.database import close_database

        await close_database()

    logger.info("application_shutdown")


def _error_response(
    request: Request,
    status_code: int,
    reason: str,
    detail: str,
    headers: Optional[dict] = None,
) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=reason, detail=detail, correlation_id=correlation_id
        ).model_dump(),
        headers={CORRELATION_HEADER: correlation_id, **(headers or {})},
    )


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError as its status code and machine-readable reason."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        reason=exc.reason,
        status_code=exc.status_code,
        detail=exc.message,
    )

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return _error_response(request, exc.status_code, exc.reason, exc.message, headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 invalid_input."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    structlog.get_logger().warning("validation_error", detail=detail)
    return _error_response(request, InvalidInput.status_code, InvalidInput.reason, detail)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the exception, return a bare 500 with no internals."""
    structlog.get_logger().exception("unhandled_exception", error_type=type(exc).__name__)
    return _error_response(
        request,
        InternalFault.status_code,
        InternalFault.reason,
        InternalFault.default_message,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        Configured FastAPI app with services attached to ``app.state``
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Tower Auth API",
        description="Registration, login, refresh-token rotation and bearer authorization",
        version="0.3.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.auth_service, app.state.access_verifier = build_auth_service(settings)

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)
    app.include_router(health_router)
    return app


app = create_app()


def run() -> None:
    """Entry point for the ``tower-api`` script."""
    settings = get_settings()
    uvicorn.run(
        "tower.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
