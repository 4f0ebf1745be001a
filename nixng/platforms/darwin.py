"""
nix-darwin Strategy

Builds ``darwinConfigurations.<host>.config.system.build.toplevel`` and
runs its ``activate`` script. Only switch is supported.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..commands import Command
from ..errors import ConfigurationError
from ..installable import FlakeInstallable, Installable
from ..util import get_hostname
from .base import ActivationMode, PlatformRebuildStrategy

logger = logging.getLogger(__name__)

DARWIN_NAMESPACE = "darwinConfigurations"
TOPLEVEL_SUFFIX = ["config", "system", "build", "toplevel"]
SYSTEM_PROFILE = Path("/nix/var/nix/profiles/system")


@dataclass(frozen=True)
class DarwinArgs:
    """Options specific to ``ng darwin``."""
    hostname: Optional[str] = None


class DarwinPlatformStrategy(PlatformRebuildStrategy):

    name = "Darwin"
    args_type = DarwinArgs
    toplevel_suffix = TOPLEVEL_SUFFIX

    def get_toplevel_installable(self, ctx, platform_args: DarwinArgs) -> Installable:
        installable = ctx.common_args.installable
        if not isinstance(installable, FlakeInstallable):
            return installable

        attribute = installable.attribute
        if not attribute:
            hostname = get_hostname(platform_args.hostname)
            attribute = [DARWIN_NAMESPACE, hostname] + TOPLEVEL_SUFFIX
        elif len(attribute) == 2 and attribute[0] == DARWIN_NAMESPACE:
            attribute = attribute + TOPLEVEL_SUFFIX
        return installable.with_attribute(attribute)

    def get_current_profile_path(self, ctx, platform_args: DarwinArgs) -> Optional[Path]:
        # No stable current-system link to diff against
        return None

    def activate_configuration(self, ctx, platform_args: DarwinArgs, built_path: Path,
                               mode: ActivationMode) -> None:
        if mode == ActivationMode.BUILD:
            return
        if mode != ActivationMode.SWITCH:
            raise ConfigurationError(f"nix-darwin does not support '{mode.value}' activation")

        activate_script = Path(built_path) / "activate"
        if not activate_script.exists():
            raise ConfigurationError(f"activate script not found in built profile: {activate_script}")

        (
            Command("nix-env")
            .args(["--profile", str(SYSTEM_PROFILE), "--set", str(Path(built_path).resolve())])
            .elevate(True)
            .dry(ctx.dry_run)
            .message("Setting system profile")
            .run()
        )
        (
            Command(activate_script)
            .elevate(True)
            .dry(ctx.dry_run)
            .message("Activating nix-darwin configuration")
            .run()
        )
