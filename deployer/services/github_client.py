"""GitHub release asset downloads.

Assets are fetched through the REST API asset URL, which answers with a
redirect to blob storage when asked for ``application/octet-stream``.
Bodies are streamed to disk chunk by chunk, with file writes run in a worker
thread.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Sequence
from pathlib import Path

import httpx
import structlog

from deployer.errors import DownloadError, InvalidArgumentError
from deployer.schemas.webhooks import Asset

logger = structlog.get_logger()

_GITHUB_API_VERSION = "2022-11-28"


class DownloadStatus(enum.Enum):
    """Outcome of a batch download that did not raise."""

    SUCCESS = "success"
    NO_ASSETS_FOUND = "no_assets_found"


def _download_headers(token: str) -> dict[str, str]:
    """Build headers requesting the raw binary representation of an asset."""
    return {
        "Accept": "application/octet-stream",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": _GITHUB_API_VERSION,
    }


def check_asset_names(assets: Sequence[Asset]) -> None:
    """Reject asset lists whose names would collide or leave the staging directory.

    Raises:
        InvalidArgumentError: On an empty, duplicated, or path-like name.
    """
    seen: set[str] = set()
    for asset in assets:
        name = asset.name
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise InvalidArgumentError(f"Invalid asset name: {name!r}")
        if name in seen:
            raise InvalidArgumentError(f"Duplicate asset name in release: {name!r}")
        seen.add(name)


async def download_asset(
    client: httpx.AsyncClient,
    url: str,
    output_path: Path,
    token: str,
) -> int:
    """Download a single asset from *url* into *output_path*.

    Args:
        client: Shared httpx async client (timeouts are configured on it).
        url: Asset API URL.
        output_path: Destination file; created or truncated.
        token: GitHub access token sent as a bearer token.

    Returns:
        Number of bytes written.

    Raises:
        InvalidArgumentError: If *token* is empty.
        DownloadError: On transport errors, non-2xx responses, or file I/O failures.
    """
    if not token:
        raise InvalidArgumentError("GitHub access token cannot be empty")

    logger.info("asset_download_started", url=url, path=str(output_path))
    written = 0
    try:
        async with client.stream(
            "GET",
            url,
            headers=_download_headers(token),
            follow_redirects=True,
        ) as resp:
            if not resp.is_success:
                raise DownloadError(
                    f"Error downloading asset {url}, status code: {resp.status_code}"
                )

            try:
                out = await asyncio.to_thread(open, output_path, "wb")
                try:
                    async for chunk in resp.aiter_bytes():
                        await asyncio.to_thread(out.write, chunk)
                        written += len(chunk)
                finally:
                    await asyncio.to_thread(out.close)
            except OSError as exc:
                raise DownloadError(f"Error writing asset to {output_path}: {exc}") from exc
    except httpx.HTTPError as exc:
        raise DownloadError(f"Error downloading asset {url}: {exc}") from exc

    logger.info("asset_downloaded", path=str(output_path), bytes=written)
    return written


async def download_assets(
    client: httpx.AsyncClient,
    assets: Sequence[Asset],
    release_dir: Path,
    token: str,
) -> DownloadStatus:
    """Download every asset of a release into *release_dir*, in order.

    The first failure aborts the batch so a deployment never continues with
    only part of a release on disk.

    Returns:
        ``DownloadStatus.NO_ASSETS_FOUND`` for an empty list (nothing is
        written), otherwise ``DownloadStatus.SUCCESS``.

    Raises:
        InvalidArgumentError: If asset names collide or are not plain file names.
        DownloadError: If any asset fails to download.
    """
    if not assets:
        return DownloadStatus.NO_ASSETS_FOUND

    check_asset_names(assets)

    for asset in assets:
        await download_asset(client, asset.url, release_dir / asset.name, token)

    return DownloadStatus.SUCCESS
