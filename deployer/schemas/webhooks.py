"""Pydantic models for GitHub release webhook payloads and release events."""

from pydantic import BaseModel, ConfigDict, Field

RELEASED_ACTION = "released"


class Asset(BaseModel):
    """A single downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str


class ReleaseEvent(BaseModel):
    """The release to deploy, reduced to the fields the pipeline consumes."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    tag: str
    action: str
    assets: tuple[Asset, ...] = ()

    @property
    def is_released(self) -> bool:
        """Whether this event should trigger a deployment."""
        return self.action == RELEASED_ACTION


class ReleaseAsset(BaseModel):
    """Asset metadata as sent by GitHub; ``url`` is the API download URL."""

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    browser_download_url: str | None = None
    content_type: str | None = None
    size: int | None = None


class Release(BaseModel):
    """Release metadata from the webhook payload."""

    tag_name: str = Field(..., min_length=1)
    name: str | None = None
    assets: list[ReleaseAsset] = Field(default_factory=list)


class RepositoryOwner(BaseModel):
    """Owner of the repository (user or organization)."""

    login: str = Field(..., min_length=1)


class Repository(BaseModel):
    """Repository metadata from the webhook payload."""

    name: str = Field(..., min_length=1)
    full_name: str | None = None
    owner: RepositoryOwner


class ReleaseWebhookPayload(BaseModel):
    """GitHub release webhook event payload.

    Reference: https://docs.github.com/en/webhooks/webhook-events-and-payloads#release
    """

    action: str
    release: Release
    repository: Repository

    def to_event(self) -> ReleaseEvent:
        """Convert the payload into an immutable ``ReleaseEvent``."""
        return ReleaseEvent(
            owner=self.repository.owner.login,
            repo=self.repository.name,
            tag=self.release.tag_name,
            action=self.action,
            assets=tuple(Asset(name=a.name, url=a.url) for a in self.release.assets),
        )
