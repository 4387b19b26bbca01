"""Shared test fixtures: staged directories, mock transports, and the app client."""

import io
import tarfile
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from deployer.config import settings
from deployer.dependencies import (
    get_command_runner,
    get_deploy_locks,
    get_http_client,
    get_notifier,
    get_repository_store,
)
from deployer.main import app
from deployer.schemas.repositories import RepositoryTarget
from deployer.services.deploy_lock import DeployLocks
from deployer.services.notifier import InMemoryNotifier
from deployer.services.reloader import InMemoryCommandRunner
from deployer.services.repository_config import RepositoryStore

ASSET_BASE_URL = "https://api.github.com/repos/testuser/my-site/releases/assets"
WEBHOOK_SECRET = "test-webhook-secret"
ACCESS_TOKEN = "ghp_test_token"


def make_tar_gz(members: dict[str, bytes]) -> bytes:
    """Build an in-memory gzip-compressed tar archive from name -> content."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in members.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def asset_transport(
    bodies: dict[str, bytes],
    captured: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Serve *bodies* keyed by URL; unknown URLs answer 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        body = bodies.get(str(request.url))
        if body is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, content=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def assets_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the staging root at a temporary directory."""
    root = tmp_path / "assets"
    root.mkdir()
    monkeypatch.setattr(settings, "assets_dir", str(root))
    return root


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """An existing, empty live site directory."""
    path = tmp_path / "www" / "my-site"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def repository_store(site_dir: Path) -> RepositoryStore:
    """A store holding one nginx-served repository target."""
    return RepositoryStore(
        [
            RepositoryTarget(
                name="my-site",
                owner="testuser",
                target_dir=str(site_dir),
                target_type="nginx",
            )
        ]
    )


@pytest.fixture
def command_runner() -> InMemoryCommandRunner:
    """Create a command runner that records reload commands and succeeds."""
    return InMemoryCommandRunner()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    """Create a fresh in-memory notifier for test inspection."""
    return InMemoryNotifier()


@pytest.fixture
def asset_bodies() -> dict[str, bytes]:
    """URL -> body map served by the mocked GitHub transport."""
    return {}


@pytest.fixture
async def client(
    assets_root: Path,
    repository_store: RepositoryStore,
    command_runner: InMemoryCommandRunner,
    notifier: InMemoryNotifier,
    asset_bodies: dict[str, bytes],
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient for the app with collaborators overridden.

    Downloads are served from ``asset_bodies``, reloads go to the in-memory
    command runner, and notifications are captured in memory.
    """

    async def _override_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with httpx.AsyncClient(transport=asset_transport(asset_bodies)) as http_client:
            yield http_client

    monkeypatch.setattr(settings, "github_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "github_access_token", ACCESS_TOKEN)
    monkeypatch.setattr(settings, "dev_mode", False)

    locks = DeployLocks()
    app.dependency_overrides[get_http_client] = _override_http_client
    app.dependency_overrides[get_repository_store] = lambda: repository_store
    app.dependency_overrides[get_command_runner] = lambda: command_runner
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_deploy_locks] = lambda: locks
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

