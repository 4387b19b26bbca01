"""Staging directory management for incoming releases.

Each release is staged under ``{assets_root}/{owner}/{repo}/{tag}``. The
directory is kept after deployment as a record of what was promoted, and is
emptied whenever the same tag is delivered again.
"""

from pathlib import Path

import structlog

from deployer.errors import DirectoryError, InvalidArgumentError
from deployer.services.file_utils import clear_dir, ensure_dir

logger = structlog.get_logger()


def release_dir_path(assets_root: str, owner: str, repo: str, tag: str) -> Path:
    """Return the staging path for a release without touching the filesystem.

    Raises:
        InvalidArgumentError: If any component is empty or would escape the root.
    """
    if not assets_root or not owner or not repo or not tag:
        raise InvalidArgumentError("Assets directory, owner, repo, or tag cannot be empty")

    for part in (owner, repo, tag):
        if part in {".", ".."} or "/" in part or "\\" in part:
            raise InvalidArgumentError(f"Invalid path component: {part!r}")

    return Path(assets_root) / owner / repo / tag


def prepare_release_dir(assets_root: str, owner: str, repo: str, tag: str) -> Path:
    """Create the staging directory for a release, or empty it if it exists.

    Redelivering the same tag therefore never mixes files from a previous,
    possibly failed, attempt into the new one.

    Raises:
        InvalidArgumentError: If any component is empty.
        DirectoryError: If the directory cannot be created or cleared.
    """
    release_dir = release_dir_path(assets_root, owner, repo, tag)

    try:
        exists = release_dir.is_dir()
    except OSError as exc:
        raise DirectoryError(f"Failed to access release directory {release_dir}: {exc}") from exc

    if exists:
        clear_dir(release_dir)
        logger.info("release_dir_reused", path=str(release_dir))
    else:
        ensure_dir(release_dir)

    return release_dir
