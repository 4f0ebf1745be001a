"""Platform strategies for the rebuild workflow."""

from .base import ActivationMode, PlatformRebuildStrategy
from .nixos import NixosArgs, NixosPlatformStrategy
from .darwin import DarwinArgs, DarwinPlatformStrategy
from .home import HomeArgs, HomeManagerPlatformStrategy
from .mock import MockArgs, MockPlatformStrategy

__all__ = [
    "ActivationMode",
    "PlatformRebuildStrategy",
    "NixosArgs",
    "NixosPlatformStrategy",
    "DarwinArgs",
    "DarwinPlatformStrategy",
    "HomeArgs",
    "HomeManagerPlatformStrategy",
    "MockArgs",
    "MockPlatformStrategy",
]
