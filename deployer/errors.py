"""Error taxonomy for the release deployment pipeline.

Every pipeline stage raises a subclass of ``DeployError``. The webhook router
turns these into ``{"error": ...}`` responses using ``status_code``; the
original cause stays reachable through ``__cause__``.
"""

from __future__ import annotations


class DeployError(Exception):
    """Base class for failures that abort a deployment attempt."""

    status_code: int = 500
    stage: str = "deploy"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentError(DeployError):
    """A required input was empty, missing, or malformed."""

    stage = "validate"


class DirectoryError(DeployError):
    """Creating, listing, clearing, removing, or linking on disk failed."""

    stage = "directory"


class DownloadError(DeployError):
    """An asset could not be fetched or written to the staging directory."""

    stage = "download"


class ExtractionError(DeployError):
    """A compressed archive could not be read or materialised."""

    stage = "extract"


class ConfigurationError(DeployError):
    """The repository target is unknown or incompletely configured."""

    stage = "configure"


class ReloadError(DeployError):
    """The dependent service could not be reloaded."""

    stage = "reload"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class UnsupportedTargetTypeError(ReloadError):
    """The repository target names a reload strategy that does not exist."""

    def __init__(self, target_type: str) -> None:
        super().__init__(f"Unsupported target type: {target_type!r}")
        self.target_type = target_type


class NotificationError(DeployError):
    """Delivering a deployment notification failed.

    Advisory only: the pipeline logs it and still reports success.
    """

    stage = "notify"
