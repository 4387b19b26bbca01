"""Repository-target lookup backed by a JSON configuration file."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import ValidationError

from deployer.errors import ConfigurationError
from deployer.schemas.repositories import DeployConfig, RepositoryTarget

logger = structlog.get_logger()


class RepositoryStore:
    """Resolve ``(name, owner)`` pairs to configured repository targets."""

    def __init__(self, repositories: Iterable[RepositoryTarget] = ()) -> None:
        self._targets: dict[tuple[str, str], RepositoryTarget] = {}
        for target in repositories:
            self._targets[(target.name, target.owner)] = target

    def get_repository(self, name: str, owner: str) -> RepositoryTarget | None:
        """Return the target for *owner*/*name*, or None if it is not configured."""
        return self._targets.get((name, owner))

    def __len__(self) -> int:
        return len(self._targets)


def load_repository_store(config_file_path: str) -> RepositoryStore:
    """Read the repository-target JSON file and build a ``RepositoryStore``.

    Raises:
        ConfigurationError: If the path is unset, unreadable, or not a valid config.
    """
    if not config_file_path:
        raise ConfigurationError("Repository config file path is not set")

    path = Path(config_file_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Error opening config file {path}: {exc}") from exc

    try:
        config = DeployConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Error decoding config file {path}: {exc}") from exc

    logger.info("repository_config_loaded", path=str(path), repositories=len(config.repositories))
    return RepositoryStore(config.repositories)
