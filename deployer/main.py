"""FastAPI application factory with lifespan context manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from deployer.config import check_required_settings, settings
from deployer.dependencies import init_production_deps
from deployer.logging_config import configure_logging
from deployer.routers import health, webhooks
from deployer.services.file_utils import ensure_dir


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging, create the staging root, and load repository targets."""
    configure_logging(json_logs=not settings.debug, log_level=settings.log_level)
    logger = structlog.get_logger()

    check_required_settings(settings)
    ensure_dir(settings.assets_dir)
    init_production_deps(
        config_file_path=settings.config_file_path,
        notification_webhook_url=settings.notification_webhook_url,
        command_timeout=settings.command_timeout,
    )
    if settings.dev_mode:
        logger.warning("dev_mode_enabled", detail="webhook signatures are not verified")

    logger.info("deployer_started", assets_dir=settings.assets_dir)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": ...}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as ``{"error": ...}`` with status 422."""
    return JSONResponse(
        status_code=422,
        content={"error": f"Invalid request: {len(exc.errors())} error(s)"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for any unhandled exception."""
    logger = structlog.get_logger()
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(health.router)
app.include_router(webhooks.router)
