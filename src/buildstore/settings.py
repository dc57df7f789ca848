"""Global settings management for buildstore.

This module handles the user config file at ~/.buildstore/config.yml.
Per-project metadata lives inside each repository, see config.py.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from buildstore.hosts.github import API_BASE_URL

CONFIG_PATH = Path.home() / ".buildstore" / "config.yml"
TOKEN_ENV_VAR = "GITHUB_TOKEN"


@dataclass
class Settings:
    """User-level defaults.

    Config file format (~/.buildstore/config.yml):
    ```yaml
    token: ghp_...
    api_url: https://api.github.com
    default_ref: main
    author_name: Jane Doe        # local repositories only
    author_email: jane@example.com
    ```
    """

    token: Optional[str] = None
    api_url: str = API_BASE_URL
    default_ref: str = "main"
    author_name: Optional[str] = None
    author_email: Optional[str] = None


def get_settings(path: Optional[Path] = None) -> Settings:
    """Load settings, falling back to defaults for anything missing.

    Unknown keys are ignored; an unreadable file yields defaults.
    """
    path = path or CONFIG_PATH
    if not path.exists():
        return Settings()

    try:
        data: Any = yaml.safe_load(path.read_text()) or {}
    except (yaml.YAMLError, OSError):
        return Settings()
    if not isinstance(data, dict):
        return Settings()

    known = {f.name for f in fields(Settings)}
    return Settings(**{k: v for k, v in data.items() if k in known and v is not None})


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    """Write settings to the config file."""
    path = path or CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in asdict(settings).items() if v is not None}
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))


def resolve_token(token: Optional[str] = None, settings: Optional[Settings] = None) -> Optional[str]:
    """Pick the GitHub token: explicit argument, then environment, then settings."""
    if token:
        return token
    env_token = os.environ.get(TOKEN_ENV_VAR)
    if env_token:
        return env_token
    if settings is not None:
        return settings.token
    return None
