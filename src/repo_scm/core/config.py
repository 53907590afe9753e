"""Configuration loading from the workspace config file and environment variables."""

import json
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from repo_scm.exceptions import ConfigError
from repo_scm.models.config import RepoScmConfig

CONFIG_FILE_NAME = ".repo-scm.json"

# environment variable suffix -> config field
_ENV_FIELDS = {
    "URL": "repository_url",
    "BRANCH": "branch",
    "MANIFEST": "manifest_name",
    "INCLUDE_MERGES": "include_merge_commits",
    "CHANGELOG": "changelog_file",
    "SNAPSHOTS": "snapshot_file",
    "HISTORY_LIMIT": "history_limit",
    "WORKERS": "workers",
    "LOG_LEVEL": "log_level",
}


def _env(key: str) -> str:
    return os.environ.get(f"REPO_SCM_{key}", "")


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, field in _ENV_FIELDS.items():
        value = _env(key)
        if not value:
            continue
        if field == "include_merge_commits":
            overrides[field] = value.lower() in ("true", "1", "yes")
        else:
            overrides[field] = value
    return overrides


def load_config(workspace: Path, **overrides: Any) -> RepoScmConfig:
    """Load configuration for a workspace.

    Precedence, lowest first: defaults, ``.repo-scm.json`` in the workspace,
    ``REPO_SCM_*`` environment variables, then explicit keyword overrides
    (None values are ignored so unset CLI options fall through).
    """
    data: Dict[str, Any] = {}

    config_file = Path(workspace) / CONFIG_FILE_NAME
    if config_file.exists():
        try:
            loaded = json.loads(config_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_file} must contain a JSON object")
        data.update(loaded)

    data.update(_env_overrides())
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return RepoScmConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
