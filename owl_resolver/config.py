"""Resolver configuration.

Settings are layered (lowest to highest priority):
- Built-in defaults
- Project settings (.owl/settings.yaml, ``resolver:`` section)
- Environment variables (OWL_*)
- Explicit keyword overrides
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SETTINGS_FILE = Path(".owl") / "settings.yaml"

# Environment variable -> config field
ENV_OVERRIDES = {
    "OWL_CACHE_DIR": "cache_dir",
    "OWL_ON_CORRUPT_CACHE": "on_corrupt_cache",
    "OWL_LOG_LEVEL": "log_level",
    "OWL_LOG_PATH": "log_path",
}


class ResolverConfig(BaseModel):
    """Where the resolver finds its inputs and keeps its cache."""

    project_root: Path = Field(default_factory=Path.cwd, description="Working tree of the host project")
    gemfile: str = Field("Gemfile", description="Dependency manifest, relative to project_root")
    gemfile_lock: str = Field("Gemfile.lock", description="Dependency lock file, relative to project_root")
    cache_dir: str = Field(".owl_cache", description="Hidden cache directory, relative to project_root")
    cache_file: str = Field("load_paths.json", description="Cache file name inside cache_dir")
    compiler_cache_dir: str = Field("cc", description="Reserved compiler cache directory inside cache_dir")
    rails_marker: str = Field("bin/rails", description="Presence selects the Rails load-path command")
    primary_suffix: str = ".rb"
    compiled_suffix: str = ".js"
    allowed_zones: list[str] = Field(
        default_factory=list,
        description="Directories under the working tree the indexer may still walk",
    )
    on_corrupt_cache: Literal["rebuild", "fail"] = "rebuild"
    log_level: str = "WARNING"
    log_path: str | None = None

    @field_validator("project_root")
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        return Path(os.path.abspath(value))

    @field_validator("primary_suffix", "compiled_suffix")
    @classmethod
    def _dotted_suffix(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError(f"suffix must start with '.': {value!r}")
        return value

    @property
    def working_tree(self) -> str:
        return str(self.project_root)

    @property
    def suffixes(self) -> tuple[str, str]:
        return (self.primary_suffix, self.compiled_suffix)

    @property
    def gemfile_path(self) -> Path:
        return self.project_root / self.gemfile

    @property
    def gemfile_lock_path(self) -> Path:
        return self.project_root / self.gemfile_lock

    @property
    def cache_dir_path(self) -> Path:
        return self.project_root / self.cache_dir

    @property
    def cache_file_path(self) -> Path:
        return self.cache_dir_path / self.cache_file

    @property
    def compiler_cache_path(self) -> Path:
        return self.cache_dir_path / self.compiler_cache_dir

    @property
    def rails_marker_path(self) -> Path:
        return self.project_root / self.rails_marker

    def allowed_zone_paths(self) -> list[str]:
        """Allowed zones as absolute path strings."""
        zones = []
        for zone in self.allowed_zones:
            zone_path = Path(zone)
            if not zone_path.is_absolute():
                zone_path = self.project_root / zone_path
            zones.append(os.path.abspath(zone_path))
        return zones


def _read_settings(path: Path) -> dict[str, Any]:
    """Read the ``resolver:`` section of a YAML settings file.

    Returns an empty dict if the file is absent, unreadable or malformed.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read settings from {path}: {e}")
        return {}

    if not data:
        return {}
    if not isinstance(data, dict) or not isinstance(data.get("resolver", {}), dict):
        logger.warning(f"Ignoring settings in {path}: 'resolver' must be a mapping")
        return {}
    return dict(data.get("resolver") or {})


def _env_settings() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for env_key, field_name in ENV_OVERRIDES.items():
        if value := os.environ.get(env_key):
            values[field_name] = value
    return values


def load_config(
    project_root: str | Path | None = None,
    settings_file: str | Path | None = None,
    **overrides: Any,
) -> ResolverConfig:
    """Build a ResolverConfig from settings file, environment and overrides.

    Args:
        project_root: Working tree of the host project (default: cwd)
        settings_file: Explicit settings file (default: <root>/.owl/settings.yaml)
        **overrides: Field values that win over every other layer

    Raises:
        ConfigurationError: A layer supplied an invalid value
    """
    root = Path(project_root) if project_root is not None else Path.cwd()
    path = Path(settings_file) if settings_file is not None else root / SETTINGS_FILE

    values: dict[str, Any] = {}
    values.update(_read_settings(path))
    values.update(_env_settings())
    values.update({k: v for k, v in overrides.items() if v is not None})
    values["project_root"] = root

    try:
        return ResolverConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid resolver settings: {e}") from e
