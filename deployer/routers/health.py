"""Health check endpoints."""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from deployer.config import settings
from deployer.schemas.health import HealthResponse

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    """Report application health and whether the staging root is present."""
    assets_ready = Path(settings.assets_dir).is_dir()
    return HealthResponse(status="ok", assets_dir="ready" if assets_ready else "missing")


@router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    """Liveness probe."""
    return "pong"
