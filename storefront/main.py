import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import DatabaseError

from storefront.db.connection import dispose_engine, init_db, sanitize_database_url

from .api import favorites
from .services.favorites.errors import AuthError, ConnectivityError
from .settings import get_settings
from .utils.error_responses import (
    build_error_response,
    build_validation_error_response,
    to_json_response,
)
from .utils.request_context import REQUEST_ID_HEADER, get_request_id, set_request_id

logging.basicConfig(
    level=get_settings().log_level_numeric,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def validate_environment() -> None:
    """Log warnings for optional configuration left at its fallback."""

    warnings = get_settings().optional_config_warnings()
    if not warnings:
        return
    logger.warning("=" * 60)
    logger.warning("Environment Configuration Warnings:")
    for warning in warnings:
        logger.warning(f"  • {warning}")
    logger.warning("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    validate_environment()

    settings = get_settings()
    logger.info("=" * 60)
    logger.info("Storefront Favorites API - Database Preflight Check")
    logger.info("=" * 60)
    logger.info(f"Database Type: {settings.database_type.upper()}")
    logger.info(
        f"Database URL: {sanitize_database_url(settings.resolved_database_url)}"
    )
    logger.info("=" * 60)

    await init_db()

    yield

    logger.info("Shutting down Storefront Favorites API")
    await dispose_engine()


app = FastAPI(
    title="Storefront Favorites API",
    version="0.1.0",
    description="Remote favorites record synchronized by storefront clients.",
    lifespan=lifespan,
    redirect_slashes=False,
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag every request with a correlation id, honouring one sent by the client."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    set_request_id(request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors."""
    errors = exc.errors()
    logger.warning(
        "Validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(errors),
    )
    return to_json_response(
        build_validation_error_response(errors, path=str(request.url.path))
    )


@app.exception_handler(ConnectivityError)
async def remote_unavailable_exception_handler(
    request: Request, exc: ConnectivityError
):
    """Surface transport failures of the favorites database as a retryable 503."""
    logger.error(
        "Favorites store unavailable for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )
    return to_json_response(build_error_response(exc, path=str(request.url.path)))


@app.exception_handler(AuthError)
async def authentication_exception_handler(request: Request, exc: AuthError):
    """Map rejected credentials to 401."""
    logger.warning(
        "Favorites access rejected for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )
    return to_json_response(build_error_response(exc, path=str(request.url.path)))


@app.exception_handler(DatabaseError)
async def database_exception_handler(request: Request, exc: DatabaseError):
    """Handle database errors the repository did not translate."""
    logger.error(
        "Database error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )
    return to_json_response(build_error_response(exc, path=str(request.url.path)))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions."""
    logger.exception(
        "Unhandled exception for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        type(exc).__name__,
    )
    return to_json_response(build_error_response(exc, path=str(request.url.path)))


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}


app.include_router(favorites.router, prefix="/favorites", tags=["favorites"])
