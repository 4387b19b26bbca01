"""GitHub release webhook router with HMAC-SHA256 signature verification."""

import hashlib
import hmac
from typing import Annotated

import httpx
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from deployer.config import settings
from deployer.dependencies import (
    get_command_runner,
    get_deploy_locks,
    get_http_client,
    get_notifier,
    get_repository_store,
)
from deployer.errors import DeployError
from deployer.schemas.webhooks import ReleaseWebhookPayload
from deployer.services.deploy_lock import DeployLocks
from deployer.services.notifier import Notifier
from deployer.services.pipeline import DeployStatus, deploy_release
from deployer.services.promotion import PromotionMode
from deployer.services.reloader import CommandRunner
from deployer.services.repository_config import RepositoryStore

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

RELEASE_EVENT = "release"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def verify_github_signature(
    request: Request,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> bytes:
    """Verify GitHub webhook HMAC-SHA256 signature.

    Reads the raw request body, computes the expected signature using the
    configured webhook secret, and performs a constant-time comparison.
    In development mode the check is skipped.

    Returns the raw body bytes on success so the route handler can parse
    the payload without reading the body stream a second time.

    Raises:
        HTTPException: 401 if the signature is missing or does not match,
            500 if no webhook secret is configured.
    """
    body = await request.body()
    if settings.dev_mode:
        logger.warning("webhook_signature_not_verified", reason="dev_mode")
        return body

    if not settings.github_webhook_secret:
        logger.error("webhook_secret_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    if not x_hub_signature_256:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing signature",
        )

    expected = "sha256=" + hmac.new(
        settings.github_webhook_secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()
    if not hmac.compare_digest(expected, x_hub_signature_256):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        )
    return body


@router.post("/github", response_model=None)
async def github_webhook(
    raw_body: Annotated[bytes, Depends(verify_github_signature)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    repositories: Annotated[RepositoryStore, Depends(get_repository_store)],
    runner: Annotated[CommandRunner, Depends(get_command_runner)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    locks: Annotated[DeployLocks, Depends(get_deploy_locks)],
    x_github_event: Annotated[str | None, Header()] = None,
) -> dict | JSONResponse:
    """Receive a GitHub release webhook and deploy the release.

    Responds with ``{"action": ...}`` once the release is live and the
    service reloaded, ``{"message": ...}`` when there is nothing to do, and
    ``{"error": ...}`` when a stage fails.
    """
    if x_github_event != RELEASE_EVENT:
        logger.info("webhook_unsupported_event", github_event=x_github_event)
        return _error(status.HTTP_400_BAD_REQUEST, "Unsupported event type")

    try:
        payload = ReleaseWebhookPayload.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.info("webhook_invalid_payload", errors=exc.error_count())
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid payload: {exc.error_count()} error(s)")

    event = payload.to_event()

    try:
        result = await deploy_release(
            event,
            assets_root=settings.assets_dir,
            http_client=http_client,
            token=settings.github_access_token,
            repositories=repositories,
            runner=runner,
            notifier=notifier,
            locks=locks,
            promotion_mode=PromotionMode.parse(settings.promotion_mode),
        )
    except DeployError as exc:
        logger.error(
            "deployment_failed",
            owner=event.owner,
            repo=event.repo,
            tag=event.tag,
            stage=exc.stage,
            error=exc.message,
        )
        return _error(exc.status_code, exc.message)

    if result.status is DeployStatus.IGNORED:
        return {"message": f'Only "released" action is supported, ignoring "{event.action}"'}

    if result.status is DeployStatus.SKIPPED_NO_ASSETS:
        return {"message": f'No assets found for release "{event.tag}", will skip the request.'}

    logger.info("deployment_succeeded", owner=event.owner, repo=event.repo, tag=event.tag)
    return {"action": result.action}
