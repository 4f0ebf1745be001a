"""Configuration handling for ng."""

from .models import (
    NgConfig,
    PreFlightConfig,
    FormatConfig,
    ExternalLintersConfig,
    KNOWN_LINTERS,
    DEFAULT_CHECKS,
)
from .loader import load_config, config_from_toml, config_from_yaml

__all__ = [
    "NgConfig",
    "PreFlightConfig",
    "FormatConfig",
    "ExternalLintersConfig",
    "KNOWN_LINTERS",
    "DEFAULT_CHECKS",
    "load_config",
    "config_from_toml",
    "config_from_yaml",
]
