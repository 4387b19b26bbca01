"""Promotion of a staged release into a live site directory.

Promoted files are hard links to the staged copies, so the site always
serves byte-for-byte what sits in the staging directory and promotion cost
scales with the number of files, not their size. Source and destination must
therefore live on the same filesystem.

Two modes are available:

* ``swap`` builds the new tree in a hidden sibling of the site directory and
  exchanges the two with two renames. Between them the site path is briefly
  absent, but it never holds a mix of old and new files. If the sibling
  cannot be created or the renames are not possible (read-only parent, site
  directory on its own mount) it logs a warning and falls back to ``link``.
  A failure to link into the sibling is an error and the site is untouched.
* ``link`` empties the site directory and links the release files into it.
  A failure part way through leaves the site directory mixed or empty.
"""

from __future__ import annotations

import enum
import os
import shutil
import tempfile
import uuid
from pathlib import Path

import structlog

from deployer.errors import DirectoryError, InvalidArgumentError
from deployer.services.file_utils import list_files

logger = structlog.get_logger()


class PromotionMode(enum.Enum):
    """How a release replaces the contents of the site directory."""

    SWAP = "swap"
    LINK = "link"

    @classmethod
    def parse(cls, value: str) -> PromotionMode:
        try:
            return cls(value.lower())
        except ValueError:
            raise InvalidArgumentError(f"Unknown promotion mode: {value!r}") from None


class _SwapUnavailableError(Exception):
    """The rename-based swap cannot be used for this site directory."""


def _link_tree(release_dir: Path, files: list[Path], dest_dir: Path) -> list[str]:
    """Hard-link *files* from *release_dir* into *dest_dir*, keeping relative paths."""
    promoted: list[str] = []
    for source in files:
        relative = source.relative_to(release_dir)
        target = dest_dir / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryError(f"Failed to create directory {target.parent}: {exc}") from exc
        try:
            os.link(source, target)
        except OSError as exc:
            raise DirectoryError(f"Failed to link {source} to {target}: {exc}") from exc

        promoted.append(relative.as_posix())
        logger.debug("file_linked", path=relative.as_posix())
    return promoted


def link_release_to_site(release_dir: str | Path, site_dir: str | Path) -> list[str]:
    """Replace the files in *site_dir* with hard links to those in *release_dir*.

    Every existing file in the site directory is removed first, then each
    release file is linked at the same relative path. There is no rollback.

    Returns:
        Relative paths of the promoted files.

    Raises:
        DirectoryError: If either directory cannot be listed, or a removal or
            link fails. Whatever was done before the failure stays done.
    """
    release_path = Path(release_dir)
    site_path = Path(site_dir)

    release_files = list_files(release_path)
    site_files = list_files(site_path)
    logger.info(
        "promotion_started",
        mode=PromotionMode.LINK.value,
        release_files=len(release_files),
        site_files=len(site_files),
    )

    for path in site_files:
        try:
            path.unlink()
        except OSError as exc:
            raise DirectoryError(f"Failed to remove {path} from site directory: {exc}") from exc
    logger.info("site_dir_cleared", path=str(site_path), removed=len(site_files))

    return _link_tree(release_path, release_files, site_path)


def swap_release_into_site(release_dir: str | Path, site_dir: str | Path) -> list[str]:
    """Swap *site_dir* for a freshly linked copy of *release_dir*.

    The new tree is linked into a hidden sibling of the site directory, then
    the site directory is renamed aside and the sibling renamed into place.
    The previous tree is deleted afterwards.

    Raises:
        DirectoryError: If the release cannot be listed, the site directory is
            missing, or the sibling tree cannot be linked. The site directory
            is left as it was.
        _SwapUnavailableError: If the sibling cannot be created or the renames
            cannot be made; the site directory is left as it was.
    """
    release_path = Path(release_dir)
    site_path = Path(site_dir)

    release_files = list_files(release_path)
    parent = site_path.parent
    try:
        if not site_path.is_dir():
            raise DirectoryError(f"Site directory does not exist: {site_path}")
        on_own_mount = site_path.stat().st_dev != parent.stat().st_dev
    except OSError as exc:
        raise DirectoryError(f"Failed to access site directory {site_path}: {exc}") from exc
    if on_own_mount:
        raise _SwapUnavailableError(f"{site_path} is a mount point")

    logger.info(
        "promotion_started", mode=PromotionMode.SWAP.value, release_files=len(release_files)
    )

    try:
        incoming = Path(tempfile.mkdtemp(prefix=f".{site_path.name}.incoming-", dir=parent))
    except OSError as exc:
        raise _SwapUnavailableError(f"cannot create sibling of {site_path}: {exc}") from exc

    try:
        promoted = _link_tree(release_path, release_files, incoming)
        shutil.copystat(site_path, incoming)
    except DirectoryError:
        shutil.rmtree(incoming, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(incoming, ignore_errors=True)
        raise DirectoryError(f"Failed to copy attributes of {site_path}: {exc}") from exc

    previous = parent / f".{site_path.name}.previous-{uuid.uuid4().hex[:12]}"
    try:
        os.rename(site_path, previous)
    except OSError as exc:
        shutil.rmtree(incoming, ignore_errors=True)
        raise _SwapUnavailableError(f"cannot move {site_path} aside: {exc}") from exc

    try:
        os.rename(incoming, site_path)
    except OSError as exc:
        try:
            os.rename(previous, site_path)
        except OSError as restore_exc:
            raise DirectoryError(
                f"Site directory {site_path} left at {previous}: {restore_exc}"
            ) from restore_exc
        shutil.rmtree(incoming, ignore_errors=True)
        raise _SwapUnavailableError(f"cannot move new tree into {site_path}: {exc}") from exc

    try:
        shutil.rmtree(previous)
    except OSError as exc:
        logger.warning("previous_site_dir_not_removed", path=str(previous), error=str(exc))

    logger.info("site_dir_swapped", path=str(site_path), files=len(promoted))
    return promoted


def promote_release(
    release_dir: str | Path,
    site_dir: str | Path,
    mode: PromotionMode = PromotionMode.SWAP,
) -> list[str]:
    """Make the file set of *site_dir* equal to that of *release_dir*.

    Returns:
        Relative paths of the promoted files.

    Raises:
        DirectoryError: If listing, removing, or linking fails.
    """
    if mode is PromotionMode.SWAP:
        try:
            return swap_release_into_site(release_dir, site_dir)
        except _SwapUnavailableError as exc:
            logger.warning(
                "promotion_swap_unavailable",
                error=str(exc),
                fallback=PromotionMode.LINK.value,
            )

    return link_release_to_site(release_dir, site_dir)
