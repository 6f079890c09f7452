"""Diff Reviewer settings."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = ".git/diff-reviewer/state.json"


class Settings(BaseSettings):
    """Settings, overridable with ``DIFF_REVIEWER_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="DIFF_REVIEWER_")

    repo_path: str = "."
    state_file: str = DEFAULT_STATE_FILE
    git_binary: str = "git"
    diff_base: str = "HEAD"
    git_timeout: Optional[float] = None

    host: str = "127.0.0.1"
    port: int = 8765
    log_level: str = "INFO"

    @property
    def state_path(self) -> Path:
        """State file location; relative paths resolve against the repository."""
        path = Path(self.state_file)
        if path.is_absolute():
            return path
        return Path(self.repo_path) / path


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> Settings:
    """Build settings from an optional YAML file plus explicit overrides.

    Precedence, highest first: ``overrides``, the YAML file, environment,
    defaults. ``None`` overrides are ignored.

    Args:
        config_path: Path to a YAML config file

    Returns:
        Settings instance
    """
    values: dict[str, Any] = {}
    if config_path:
        with open(config_path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        values.update(user_config)
        logger.debug(f"Loaded config from {config_path}")

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
