"""Directory and archive helpers shared by staging, extraction, and promotion.

All functions are synchronous filesystem operations; the pipeline runs them
through ``asyncio.to_thread`` so they never block the event loop.
"""

from __future__ import annotations

import os
import shutil
import tarfile
from pathlib import Path

import structlog

from deployer.errors import DirectoryError, ExtractionError, InvalidArgumentError

logger = structlog.get_logger()

# File name suffixes treated as gzip-compressed tar archives.
ARCHIVE_SUFFIXES: tuple[str, ...] = (".gz", ".tgz")

_COPY_CHUNK_SIZE = 1024 * 1024


def ensure_dir(path: str | os.PathLike[str]) -> Path:
    """Create *path* (and parents) if it does not exist yet.

    Raises:
        InvalidArgumentError: If *path* is empty.
        DirectoryError: If the directory cannot be created.
    """
    if not str(path):
        raise InvalidArgumentError("Directory path cannot be empty")

    directory = Path(path)
    try:
        if directory.is_dir():
            logger.debug("directory_exists", path=str(directory))
            return directory
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryError(f"Failed to create directory {directory}: {exc}") from exc

    logger.info("directory_created", path=str(directory))
    return directory


def clear_dir(path: str | os.PathLike[str]) -> None:
    """Remove every entry directly inside *path*, keeping *path* itself.

    Raises:
        DirectoryError: If the directory cannot be read or an entry cannot be removed.
    """
    directory = Path(path)
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        raise DirectoryError(f"Failed to read directory {directory}: {exc}") from exc

    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as exc:
            raise DirectoryError(f"Failed to remove {entry}: {exc}") from exc

    logger.debug("directory_cleared", path=str(directory), removed=len(entries))


def list_files(root: str | os.PathLike[str]) -> list[Path]:
    """Return every non-directory entry under *root*, recursively.

    Results are sorted so that callers process files in a stable order.

    Raises:
        DirectoryError: If *root* is missing, not a directory, or cannot be walked.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise DirectoryError(f"Directory does not exist: {root_path}")

    def _raise(exc: OSError) -> None:
        raise exc

    files: list[Path] = []
    try:
        for dirpath, _dirnames, filenames in os.walk(root_path, onerror=_raise):
            files.extend(Path(dirpath) / name for name in filenames)
    except OSError as exc:
        raise DirectoryError(f"Failed to walk directory {root_path}: {exc}") from exc

    return sorted(files)


def is_archive(path: Path) -> bool:
    """Return True if *path* carries a gzip-tar archive suffix."""
    return path.name.endswith(ARCHIVE_SUFFIXES)


def _member_target(base: Path, member_name: str) -> Path:
    """Resolve where an archive member lands, refusing paths outside *base*."""
    target = (base / member_name).resolve()
    resolved_base = base.resolve()
    if target != resolved_base and resolved_base not in target.parents:
        raise ExtractionError(f"Archive member escapes extraction directory: {member_name}")
    return target


def extract_archive(archive: Path) -> list[Path]:
    """Extract the regular files of one gzip-tar *archive* next to it.

    Directory members are skipped (their paths are created on demand) and
    other member types such as links or devices are ignored. The archive is
    deleted once every member has been written.

    Returns:
        The extracted file paths, in archive order.

    Raises:
        ExtractionError: On decode, read, or write failures.
    """
    base = archive.parent
    extracted: list[Path] = []

    try:
        with tarfile.open(archive, mode="r:gz") as tar:
            for member in tar:
                if not member.isfile():
                    continue

                target = _member_target(base, member.name)
                source = tar.extractfile(member)
                if source is None:
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out, _COPY_CHUNK_SIZE)

                extracted.append(target)
                logger.debug("archive_member_extracted", archive=archive.name, member=member.name)
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise ExtractionError(f"Failed to extract {archive}: {exc}") from exc

    try:
        archive.unlink()
    except OSError as exc:
        raise ExtractionError(f"Failed to remove archive {archive}: {exc}") from exc

    logger.info("archive_extracted", archive=archive.name, files=len(extracted))
    return extracted


def extract_archives_in_dir(root: str | os.PathLike[str]) -> list[str]:
    """Extract every gzip-tar archive found under *root*, in place.

    Non-archive files are left untouched. Extraction stops at the first
    failure; files already written by earlier archives are kept.

    Returns:
        Paths relative to *root* of every file now present because of this
        call, i.e. the untouched non-archive files plus all extracted files.

    Raises:
        ExtractionError: If *root* cannot be listed or any archive fails.
    """
    root_path = Path(root)
    try:
        files = list_files(root_path)
    except DirectoryError as exc:
        raise ExtractionError(f"Failed to read directory {root_path}: {exc}") from exc

    processed: list[str] = []
    for path in files:
        if not is_archive(path):
            logger.debug("extraction_skipped_non_archive", path=str(path))
            processed.append(path.relative_to(root_path).as_posix())
            continue

        for extracted in extract_archive(path):
            processed.append(extracted.relative_to(root_path.resolve()).as_posix())

    return processed
