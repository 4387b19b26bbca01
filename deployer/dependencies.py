"""Centralized FastAPI dependencies for use with Depends()."""

from collections.abc import AsyncGenerator

import httpx
import structlog

from deployer.config import settings
from deployer.services.deploy_lock import DeployLocks
from deployer.services.notifier import Notifier, NullNotifier
from deployer.services.reloader import CommandRunner, SubprocessCommandRunner
from deployer.services.repository_config import RepositoryStore

logger = structlog.get_logger()

_repository_store = RepositoryStore()
_command_runner: CommandRunner = SubprocessCommandRunner(timeout=settings.command_timeout)
_notifier: Notifier = NullNotifier()
_deploy_locks = DeployLocks()


def init_production_deps(
    config_file_path: str,
    notification_webhook_url: str,
    command_timeout: float,
) -> None:
    """Load the repository targets and build the production collaborators.

    Raises:
        ConfigurationError: If the repository config file cannot be loaded.
    """
    global _repository_store, _command_runner, _notifier  # noqa: PLW0603

    from deployer.services.notifier import WebhookNotifier
    from deployer.services.repository_config import load_repository_store

    _repository_store = load_repository_store(config_file_path)
    _command_runner = SubprocessCommandRunner(timeout=command_timeout)

    if notification_webhook_url:
        _notifier = WebhookNotifier(notification_webhook_url)
        logger.info("notifications_enabled")
    else:
        _notifier = NullNotifier()
        logger.info("notifications_disabled")


def get_repository_store() -> RepositoryStore:
    """Return the configured repository-target store.

    Empty until ``init_production_deps()`` loads the config file.
    """
    return _repository_store


def get_command_runner() -> CommandRunner:
    """Return the command runner used to reload services."""
    return _command_runner


def get_notifier() -> Notifier:
    """Return the deployment notifier.

    Defaults to ``NullNotifier`` until a webhook URL is configured.
    """
    return _notifier


def get_deploy_locks() -> DeployLocks:
    """Return the per-repository deployment lock table."""
    return _deploy_locks


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield an httpx client for asset downloads, closed after the request."""
    async with httpx.AsyncClient(timeout=settings.download_timeout) as client:
        yield client


__all__ = [
    "get_command_runner",
    "get_deploy_locks",
    "get_http_client",
    "get_notifier",
    "get_repository_store",
    "init_production_deps",
]
