"""
Configuration loader.

Reads ng.toml or ng.yaml from the project root, or an explicit path.
A missing file yields the default configuration.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import NgConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("ng.toml", "ng.yaml", "ng.yml")


def find_config_file(project_root: Optional[Path] = None) -> Optional[Path]:
    """Return the first conventional config file in the project root, if any."""
    root = Path(project_root) if project_root else Path.cwd()
    for filename in CONFIG_FILENAMES:
        candidate = root / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    project_root: Optional[Path] = None,
) -> NgConfig:
    """
    Load the ng configuration.

    Args:
        config_path: Explicit file; falls back to NG_CONFIG, then the project root
        project_root: Directory searched for ng.toml / ng.yaml

    Returns:
        Parsed NgConfig (defaults if no file exists)

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid
    """
    explicit = config_path or os.environ.get("NG_CONFIG")
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigError(f"Configuration file does not exist: {path}")
    else:
        path = find_config_file(project_root)
        if path is None:
            logger.debug("No configuration file found, using defaults")
            return NgConfig()

    logger.debug("Loading configuration from %s", path)
    return parse_config_data(_read_file(path), source=str(path))


def parse_config_data(data: Dict[str, Any], source: str = "<config>") -> NgConfig:
    """Validate a raw mapping against the schema."""
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration in {source}: expected a mapping at top level")
    try:
        return NgConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {e}")


def config_from_toml(text: str) -> NgConfig:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML: {e}")
    return parse_config_data(data)


def config_from_yaml(text: str) -> NgConfig:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}")
    return parse_config_data(data)


def _read_file(path: Path) -> Dict[str, Any]:
    """Read a TOML or YAML file into a mapping."""
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                return tomllib.load(f)
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    except IOError as e:
        raise ConfigError(f"Cannot read {path}: {e}")
