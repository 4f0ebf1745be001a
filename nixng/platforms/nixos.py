"""
NixOS Strategy

Builds ``nixosConfigurations.<host>.config.system.build.toplevel`` and
activates it with ``switch-to-configuration``.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..commands import Command
from ..errors import ConfigurationError, NgError
from ..installable import FlakeInstallable, Installable
from ..util import get_hostname
from .base import ActivationMode, PlatformRebuildStrategy

logger = logging.getLogger(__name__)

NIXOS_NAMESPACE = "nixosConfigurations"
TOPLEVEL_SUFFIX = ["config", "system", "build", "toplevel"]
CURRENT_SYSTEM = Path("/run/current-system")
SYSTEM_PROFILE = Path("/nix/var/nix/profiles/system")


@dataclass(frozen=True)
class NixosArgs:
    """Options specific to ``ng os``."""
    hostname: Optional[str] = None
    bypass_root_check: bool = False
    specialisation: Optional[str] = None


def is_root() -> bool:
    return os.geteuid() == 0


class NixosPlatformStrategy(PlatformRebuildStrategy):

    name = "NixOS"
    args_type = NixosArgs
    toplevel_suffix = TOPLEVEL_SUFFIX

    def pre_rebuild_hook(self, ctx, platform_args: NixosArgs) -> None:
        if not platform_args.bypass_root_check and is_root():
            raise NgError(
                "Do not run `ng os` as root. Sudo will be used internally when needed."
            )

    def get_toplevel_installable(self, ctx, platform_args: NixosArgs) -> Installable:
        installable = ctx.common_args.installable
        if not isinstance(installable, FlakeInstallable):
            return installable

        attribute = installable.attribute
        if not attribute:
            hostname = get_hostname(platform_args.hostname)
            attribute = [NIXOS_NAMESPACE, hostname] + TOPLEVEL_SUFFIX
        elif len(attribute) == 2 and attribute[0] == NIXOS_NAMESPACE:
            attribute = attribute + TOPLEVEL_SUFFIX

        result = installable.with_attribute(attribute)
        logger.debug("NixOS toplevel: %s", result)
        return result

    def get_current_profile_path(self, ctx, platform_args: NixosArgs) -> Optional[Path]:
        return CURRENT_SYSTEM

    def activate_configuration(self, ctx, platform_args: NixosArgs, built_path: Path,
                               mode: ActivationMode) -> None:
        if mode == ActivationMode.BUILD:
            return
        elevate = not platform_args.bypass_root_check

        target = Path(built_path)
        if platform_args.specialisation:
            target = target / "specialisation" / platform_args.specialisation
        switch_script = target / "bin" / "switch-to-configuration"
        if not switch_script.exists():
            raise ConfigurationError(
                f"Activation script 'bin/switch-to-configuration' not found in built profile: {target}"
            )

        if mode in (ActivationMode.SWITCH, ActivationMode.BOOT):
            (
                Command("nix-env")
                .args(["--profile", str(SYSTEM_PROFILE), "--set", str(Path(built_path).resolve())])
                .elevate(elevate)
                .dry(ctx.dry_run)
                .message("Setting system profile")
                .run()
            )

        (
            Command(switch_script)
            .arg(mode.value)
            .elevate(elevate)
            .dry(ctx.dry_run)
            .message(f"Activating NixOS configuration ({mode.value})")
            .run()
        )
        logger.info("NixOS configuration (%s) activated", mode.value)
