"""Pydantic models for the repository-target configuration file."""

from pydantic import BaseModel, ConfigDict, Field


class RepositoryTarget(BaseModel):
    """Where and how a repository's releases are deployed.

    Field names follow the camelCase keys used in the JSON config file.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    owner: str
    source_type: str = Field(default="github", alias="sourceType")
    target_dir: str = Field(default="", alias="targetDir")
    target_type: str = Field(default="", alias="targetType")
    target_process_name: str = Field(default="", alias="targetProcessName")


class DeployConfig(BaseModel):
    """Top-level shape of the repository-target configuration file."""

    repositories: list[RepositoryTarget] = Field(default_factory=list)
