"""Configuration loading for Banana.

Reads ``banana.yml`` from the project root::

    site:
      title: My Blog
      description: Notes and things
      author: Jane Doe
      vars:
        twitter: janedoe
    output_dir: _build
    port: 4000

Key classes:
- SiteConfig: The ``site`` section.
- Config: The whole file with defaults applied.

Key functions:
- load_config: Read and validate banana.yml.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_NAME = "banana.yml"

DEFAULT_CONFIG = {
    "output_dir": "_build",
    "port": 4000,
}


@dataclass(frozen=True)
class SiteConfig:
    """Site-wide metadata from the ``site`` section.

    Attributes:
        title: Site title.
        description: Site description.
        author: Site author.
        vars: Arbitrary values for template interpolation.
    """

    title: str = ""
    description: str = ""
    author: str = ""
    vars: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Config:
    """Parsed banana.yml.

    Attributes:
        site: Site metadata.
        output_dir: Output directory, relative to the project root.
        port: Port for the development server.
    """

    site: SiteConfig = field(default_factory=SiteConfig)
    output_dir: str = DEFAULT_CONFIG["output_dir"]
    port: int = DEFAULT_CONFIG["port"]


def _site_from_mapping(data: Any, path: Path) -> SiteConfig:
    if data is None:
        return SiteConfig()
    if not isinstance(data, dict):
        raise ConfigError("'site' must be a mapping", path)
    variables = data.get("vars") or {}
    if not isinstance(variables, dict):
        raise ConfigError("'site.vars' must be a mapping", path)
    return SiteConfig(
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        author=str(data.get("author") or ""),
        vars=variables,
    )


def load_config(project_root: Path) -> Config:
    """Load site configuration from banana.yml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Config with defaults applied.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    config_path = project_root / CONFIG_NAME
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError("Configuration file not found", config_path, exc) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration: {exc}", config_path, exc) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed configuration: {exc}", config_path, exc) from exc

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError("Configuration must be a mapping", config_path)

    values = DEFAULT_CONFIG.copy()
    values.update({k: v for k, v in loaded.items() if k in DEFAULT_CONFIG})
    try:
        port = int(values["port"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid port {values['port']!r}", config_path, exc) from exc
    return Config(
        site=_site_from_mapping(loaded.get("site"), config_path),
        output_dir=str(values["output_dir"]),
        port=port,
    )
