"""Tests for promoting a staged release into the site directory."""

import errno
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from deployer.errors import DirectoryError, InvalidArgumentError
from deployer.services.promotion import (
    PromotionMode,
    link_release_to_site,
    promote_release,
)


@pytest.fixture
def release_dir(tmp_path: Path) -> Path:
    """A staged release with files ``x.txt`` and ``sub/y.txt``."""
    path = tmp_path / "assets" / "testuser" / "my-site" / "v1.0.0"
    (path / "sub").mkdir(parents=True)
    (path / "x.txt").write_text("x content")
    (path / "sub" / "y.txt").write_text("y content, a bit longer")
    return path


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """A live site directory still holding a previous release's file."""
    path = tmp_path / "www" / "my-site"
    path.mkdir(parents=True)
    (path / "old.txt").write_text("previous release")
    return path


def _relative_files(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


@pytest.mark.parametrize("mode", [PromotionMode.SWAP, PromotionMode.LINK])
def test_promote_replaces_site_contents_with_hard_links(
    release_dir: Path, site_dir: Path, mode: PromotionMode
) -> None:
    promoted = promote_release(release_dir, site_dir, mode)

    assert sorted(promoted) == ["sub/y.txt", "x.txt"]
    assert _relative_files(site_dir) == {"x.txt", "sub/y.txt"}
    assert not (site_dir / "old.txt").exists()
    for rel in ("x.txt", "sub/y.txt"):
        source = (release_dir / rel).stat()
        dest = (site_dir / rel).stat()
        assert dest.st_size == source.st_size
        assert dest.st_ino == source.st_ino


def test_swap_leaves_no_sibling_directories(release_dir: Path, site_dir: Path) -> None:
    promote_release(release_dir, site_dir, PromotionMode.SWAP)

    assert [p.name for p in site_dir.parent.iterdir()] == ["my-site"]


def test_swap_preserves_site_dir_permissions(release_dir: Path, site_dir: Path) -> None:
    site_dir.chmod(0o755)

    promote_release(release_dir, site_dir, PromotionMode.SWAP)

    assert site_dir.stat().st_mode & 0o777 == 0o755


def test_swap_falls_back_to_link_when_rename_fails(release_dir: Path, site_dir: Path) -> None:
    """If the site directory cannot be renamed aside, clear-then-link still promotes."""
    with patch("deployer.services.promotion.os.rename", side_effect=OSError("busy")):
        promoted = promote_release(release_dir, site_dir, PromotionMode.SWAP)

    assert sorted(promoted) == ["sub/y.txt", "x.txt"]
    assert _relative_files(site_dir) == {"x.txt", "sub/y.txt"}
    assert [p.name for p in site_dir.parent.iterdir()] == ["my-site"]


def test_swap_restores_site_when_second_rename_fails(release_dir: Path, site_dir: Path) -> None:
    """A failed move into place puts the old tree back before falling back."""
    real_rename = os.rename
    calls: list[tuple[str, str]] = []

    def flaky_rename(src: str, dst: str) -> None:
        calls.append((str(src), str(dst)))
        if len(calls) == 2:
            raise OSError("cross-device")
        real_rename(src, dst)

    with patch("deployer.services.promotion.os.rename", side_effect=flaky_rename):
        promote_release(release_dir, site_dir, PromotionMode.SWAP)

    # rename aside, failed rename into place, restore
    assert len(calls) == 3
    assert calls[2][1] == str(site_dir)
    assert _relative_files(site_dir) == {"x.txt", "sub/y.txt"}


def test_link_missing_site_dir_raises(release_dir: Path, tmp_path: Path) -> None:
    with pytest.raises(DirectoryError):
        link_release_to_site(release_dir, tmp_path / "nowhere")


@pytest.mark.parametrize("mode", [PromotionMode.SWAP, PromotionMode.LINK])
def test_promote_missing_release_dir_raises(
    site_dir: Path, tmp_path: Path, mode: PromotionMode
) -> None:
    with pytest.raises(DirectoryError):
        promote_release(tmp_path / "missing", site_dir, mode)

    assert (site_dir / "old.txt").exists()


def test_link_failure_aborts_without_restoring(release_dir: Path, site_dir: Path) -> None:
    """A link error stops promotion; removed site files are not brought back."""
    with (
        patch("deployer.services.promotion.os.link", side_effect=OSError("EXDEV")),
        pytest.raises(DirectoryError, match="Failed to link"),
    ):
        link_release_to_site(release_dir, site_dir)

    assert not (site_dir / "old.txt").exists()


def test_promotion_mode_parse() -> None:
    assert PromotionMode.parse("SWAP") is PromotionMode.SWAP
    assert PromotionMode.parse("link") is PromotionMode.LINK
    with pytest.raises(InvalidArgumentError):
        PromotionMode.parse("copy")


def test_swap_link_failure_leaves_site_untouched(release_dir: Path, site_dir: Path) -> None:
    """Links that cannot be made into the sibling fail before the site is touched."""
    cross_device = OSError(errno.EXDEV, "Invalid cross-device link")
    with (
        patch("deployer.services.promotion.os.link", side_effect=cross_device),
        pytest.raises(DirectoryError, match="Failed to link"),
    ):
        promote_release(release_dir, site_dir, PromotionMode.SWAP)

    assert _relative_files(site_dir) == {"old.txt"}
    assert [p.name for p in site_dir.parent.iterdir()] == ["my-site"]


def test_swap_missing_site_dir_raises(release_dir: Path, tmp_path: Path) -> None:
    with pytest.raises(DirectoryError, match="does not exist"):
        promote_release(release_dir, tmp_path / "nowhere", PromotionMode.SWAP)

    assert not (tmp_path / "nowhere").exists()
