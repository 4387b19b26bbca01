"""Release deployment pipeline orchestration.

Runs the stages of a deployment strictly in order:
stage -> download -> extract -> resolve target -> promote -> reload -> notify.
The first failing stage aborts the run and its ``DeployError`` propagates to
the caller; completed stages are never undone. Only the notification is
best-effort.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field

import httpx
import structlog

from deployer.errors import ConfigurationError, NotificationError
from deployer.logging_config import bind_release_context, clear_release_context
from deployer.schemas.repositories import RepositoryTarget
from deployer.schemas.webhooks import ReleaseEvent
from deployer.services.deploy_lock import DeployLocks
from deployer.services.file_utils import extract_archives_in_dir
from deployer.services.github_client import DownloadStatus, download_assets
from deployer.services.notifier import Notifier, format_deploy_message
from deployer.services.promotion import PromotionMode, promote_release
from deployer.services.release_dirs import prepare_release_dir
from deployer.services.reloader import CommandRunner, reload_target
from deployer.services.repository_config import RepositoryStore

logger = structlog.get_logger()


class DeployStatus(enum.Enum):
    """How a pipeline run that did not raise ended."""

    DEPLOYED = "deployed"
    IGNORED = "ignored"
    SKIPPED_NO_ASSETS = "skipped_no_assets"


@dataclass
class DeployResult:
    """Outcome of a pipeline run that did not raise."""

    status: DeployStatus
    action: str
    tag: str
    release_dir: str | None = None
    files: list[str] = field(default_factory=list)
    notified: bool = False


def resolve_target(repositories: RepositoryStore, owner: str, repo: str) -> RepositoryTarget:
    """Look up the deploy target for *owner*/*repo*.

    Raises:
        ConfigurationError: If the repository is unknown or has no site directory.
    """
    target = repositories.get_repository(repo, owner)
    if target is None:
        raise ConfigurationError(f"Repository not found in config: {owner}/{repo}")
    if not target.target_dir:
        raise ConfigurationError(f"Site directory not found for repository: {owner}/{repo}")
    return target


async def deploy_release(
    event: ReleaseEvent,
    *,
    assets_root: str,
    http_client: httpx.AsyncClient,
    token: str,
    repositories: RepositoryStore,
    runner: CommandRunner,
    notifier: Notifier,
    locks: DeployLocks,
    promotion_mode: PromotionMode = PromotionMode.SWAP,
) -> DeployResult:
    """Deploy a published release end to end.

    Args:
        event: The release to deploy.
        assets_root: Root under which releases are staged.
        http_client: httpx client used for asset downloads.
        token: GitHub access token for asset downloads.
        repositories: Repository-target lookup.
        runner: Command runner used by the reload step.
        notifier: Sink for the post-deployment message.
        locks: Per-repository lock table; held from staging through reload.
        promotion_mode: How the site directory is replaced.

    Returns:
        A ``DeployResult``; ``IGNORED`` for actions other than ``released``,
        ``SKIPPED_NO_ASSETS`` for releases without assets.

    Raises:
        DeployError: Any subclass except ``NotificationError``, from the
            first stage that fails.
    """
    if not event.is_released:
        logger.info("release_action_ignored", action=event.action, tag=event.tag)
        return DeployResult(status=DeployStatus.IGNORED, action=event.action, tag=event.tag)

    bind_release_context(event.owner, event.repo, event.tag)
    try:
        async with locks.hold(event.owner, event.repo):
            result = await _run_stages(
                event,
                assets_root=assets_root,
                http_client=http_client,
                token=token,
                repositories=repositories,
                runner=runner,
                promotion_mode=promotion_mode,
            )

        if result.status is DeployStatus.DEPLOYED:
            result.notified = await _notify(notifier, event, result.files)
        return result
    finally:
        clear_release_context()


async def _run_stages(
    event: ReleaseEvent,
    *,
    assets_root: str,
    http_client: httpx.AsyncClient,
    token: str,
    repositories: RepositoryStore,
    runner: CommandRunner,
    promotion_mode: PromotionMode,
) -> DeployResult:
    release_dir = await asyncio.to_thread(
        prepare_release_dir, assets_root, event.owner, event.repo, event.tag
    )
    logger.info("release_staged", release_dir=str(release_dir))

    status = await download_assets(http_client, event.assets, release_dir, token)
    if status is DownloadStatus.NO_ASSETS_FOUND:
        logger.info("release_skipped_no_assets")
        return DeployResult(
            status=DeployStatus.SKIPPED_NO_ASSETS,
            action=event.action,
            tag=event.tag,
            release_dir=str(release_dir),
        )
    logger.info("release_downloaded", assets=len(event.assets))

    processed = await asyncio.to_thread(extract_archives_in_dir, release_dir)
    logger.info("release_extracted", files=len(processed))

    target = resolve_target(repositories, event.owner, event.repo)
    promoted = await asyncio.to_thread(
        promote_release, release_dir, target.target_dir, promotion_mode
    )
    logger.info("release_promoted", site_dir=target.target_dir, files=len(promoted))

    await reload_target(runner, target.target_type, target.target_process_name)

    return DeployResult(
        status=DeployStatus.DEPLOYED,
        action=event.action,
        tag=event.tag,
        release_dir=str(release_dir),
        files=promoted,
    )


async def _notify(notifier: Notifier, event: ReleaseEvent, files: list[str]) -> bool:
    """Send the deployment message; failures are logged and never raised."""
    try:
        await notifier.notify(format_deploy_message(event.repo, event.tag, files))
    except NotificationError as exc:
        logger.warning("notification_failed", error=str(exc))
        return False
    return True
