"""Configuration model for repo-scm."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = {"debug", "info", "warning", "error"}


class RepoScmConfig(BaseModel):
    """Settings for resolving a workspace and generating its change log."""

    repository_url: Optional[str] = None
    branch: str = "master"
    manifest_name: str = "repo.xml"
    include_merge_commits: bool = True
    changelog_file: str = ".repo-scm/changelog.json"
    snapshot_file: str = ".repo-scm/snapshots.json"
    history_limit: int = Field(default=20, ge=1)
    workers: int = Field(default=1, ge=1, le=32)
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}. Must be one of {sorted(LOG_LEVELS)}")
        return value.lower()

    @field_validator("branch")
    @classmethod
    def _default_branch(cls, value: str) -> str:
        return value.strip() or "master"
