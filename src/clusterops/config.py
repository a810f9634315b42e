"""Settings for clusterops: ``clusterops.yaml`` plus environment and defaults.

The nearest ``clusterops.yaml`` at or above the working directory is used
unless a path is given explicitly. Paths inside the file are relative to
the file itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

CONFIG_FILENAME = "clusterops.yaml"
HOME_ENV = "CLUSTEROPS_HOME"

DEFAULT_HOME = "~/.clusterops/clusters"
DEFAULT_SSH_KEY = "~/.ssh/id_rsa"
DEFAULT_SSH_TIMEOUT = 5
DEFAULT_INVENTORY_FILE = "inventory.ini"


@dataclass(frozen=True)
class ClusteropsConfig:
    """Parsed clusterops project configuration."""

    config_path: Path | None = None
    home: str | None = None
    ssh_key: str | None = None
    ssh_timeout: int | None = None
    inventory: str | None = None


class _ConfigFile(BaseModel):
    """Schema of ``clusterops.yaml``; unknown keys are ignored."""

    home: str | None = None
    ssh_key: str | None = None
    ssh_timeout: int | None = Field(default=None, gt=0, strict=True)
    inventory: str | None = None


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest ``clusterops.yaml`` at or above *start*, if any."""
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> ClusteropsConfig:
    """Load *path*, or the discovered config file, or fall back to defaults.

    Raises:
        FileNotFoundError: If an explicit *path* does not exist.
        ValueError: If the file is not a mapping or a key has a bad value.
        yaml.YAMLError: If the file is not valid YAML.
    """
    if path is None:
        found = find_config() if auto_discover else None
        return _parse_config(found) if found else ClusteropsConfig()

    config_path = Path(path).resolve()
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return _parse_config(config_path)


def _parse_config(config_path: Path) -> ClusteropsConfig:
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a YAML mapping, got {type(data).__name__}")

    try:
        raw = _ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    def _relative_to_file(value: str | None) -> str | None:
        if value is None:
            return None
        return str((config_path.parent / Path(value).expanduser()).resolve())

    return ClusteropsConfig(
        config_path=config_path,
        home=_relative_to_file(raw.home),
        ssh_key=_relative_to_file(raw.ssh_key),
        ssh_timeout=raw.ssh_timeout,
        inventory=raw.inventory,
    )


def resolve_home(explicit: str | None, cfg: ClusteropsConfig) -> Path:
    """Return the metadata store root: flag > ``$CLUSTEROPS_HOME`` > config > default."""
    value = explicit or os.environ.get(HOME_ENV) or cfg.home or DEFAULT_HOME
    return Path(value).expanduser()


def resolve_ssh_key(cfg: ClusteropsConfig) -> Path:
    """Return the private key shared by the Ansible deployment."""
    return Path(cfg.ssh_key or DEFAULT_SSH_KEY).expanduser()
