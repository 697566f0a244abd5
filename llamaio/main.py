"""llamaio - Task management REST API with users and task assignment."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from llamaio.core.config import Settings, constants, settings
from llamaio.core.db_client import DatabaseError, DocumentStore
from llamaio.core.errors import ApiError, classify_error_with_response
from llamaio.core.logging import configure_logfire, instrument_fastapi
from llamaio.interface.home_router import router as home_router
from llamaio.interface.responses import envelope
from llamaio.interface.tasks_router import router as tasks_router
from llamaio.interface.users_router import router as users_router


logger = logging.getLogger(__name__)

HTTP_ERROR_MESSAGES = {
    constants.HTTP_NOT_FOUND: "Not found",
    constants.HTTP_METHOD_NOT_ALLOWED: "Method not allowed",
}


async def validate_startup_configuration(app_settings: Settings) -> DocumentStore:
    """Validate the database configuration and open the document store.

    Fails fast: a missing DATABASE_URL or an unreachable store exits the process.

    Returns:
        The connected document store
    """
    logger.info("startup_validation_begin")

    try:
        db_path = app_settings.database_path()
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})

        store = DocumentStore(db_path)
        await store.connect()
        if not await store.ping():
            raise ConnectionError(f"Document store at {db_path} did not respond")

        logger.info("startup_validation_complete", extra={"status": "ok"})
        return store

    except (ValueError, ConnectionError, DatabaseError) as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)
    except Exception as e:
        logger.error("startup_validation_unexpected_error", extra={"error": str(e)})
        print(f"\n❌ Unexpected error during startup validation: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


async def handle_api_error(request: Request, exc: Exception) -> JSONResponse:
    """Render ApiError subclasses as envelopes with their own status."""
    response = classify_error_with_response(exc)
    logger.warning(
        "request_failed",
        extra={"path": request.url.path, "code": response.code, "status_code": response.status_code},
    )
    return envelope(response.message, status_code=response.status_code)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) as envelopes."""
    message = HTTP_ERROR_MESSAGES.get(exc.status_code, str(exc.detail))
    response = envelope(message, status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def handle_request_validation_error(request: Request, exc: Exception) -> JSONResponse:
    """Render FastAPI parameter validation failures as 400 envelopes."""
    logger.warning("request_validation_failed", extra={"path": request.url.path, "error": str(exc)})
    return envelope("Invalid request", status_code=constants.HTTP_BAD_REQUEST)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log unhandled errors and return a generic 500 envelope."""
    response = classify_error_with_response(exc)
    logger.error(
        "unhandled_error",
        extra={"path": request.url.path, "method": request.method, "error": str(exc)},
        exc_info=exc,
    )
    return envelope(response.message, status_code=response.status_code)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan context manager."""
        # Startup
        # Configure logging first so validation logs are captured
        configure_logfire(app_settings)

        store = await validate_startup_configuration(app_settings)
        app.state.store = store
        logger.info("Document store initialized")

        yield
        # Shutdown
        await store.close()

    app = FastAPI(
        title=constants.APP_NAME,
        description="Task management REST API with users and task assignment",
        version=constants.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Instrument FastAPI with Logfire
    instrument_fastapi(app)

    # Register routers
    app.include_router(home_router)
    app.include_router(tasks_router)
    app.include_router(users_router)

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    uvicorn.run("llamaio.main:app", host=settings.host, port=settings.port)
