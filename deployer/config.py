"""Application configuration loaded from environment variables."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from deployer.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings read from ``DEPLOY_TO_VM_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEPLOY_TO_VM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "release-deployer"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    # Staging root: releases land in {assets_dir}/{owner}/{repo}/{tag}
    assets_dir: str = "./assets"
    # JSON file listing the repositories this instance deploys
    config_file_path: str = ""

    # Required unless dev_mode is set
    github_webhook_secret: str = Field(
        default="",
        validation_alias=AliasChoices(
            "DEPLOY_TO_VM_SECRET_TOKEN", "DEPLOY_TO_VM_GITHUB_WEBHOOK_SECRET"
        ),
    )
    # Required; sent as a bearer token on every asset download
    github_access_token: str = ""
    # Skips webhook signature verification; never enable in production
    dev_mode: bool = False

    notification_webhook_url: str = ""

    download_timeout: float = 60.0
    command_timeout: float = 60.0
    promotion_mode: str = "swap"


def check_required_settings(config: Settings) -> None:
    """Refuse to run without the credentials a deployment needs.

    Raises:
        ConfigurationError: If the webhook secret is unset outside dev mode,
            or the GitHub access token is unset.
    """
    if not config.github_webhook_secret and not config.dev_mode:
        raise ConfigurationError("Environment variable DEPLOY_TO_VM_SECRET_TOKEN is not set")
    if not config.github_access_token:
        raise ConfigurationError(
            "Environment variable DEPLOY_TO_VM_GITHUB_ACCESS_TOKEN is not set"
        )


settings = Settings()
