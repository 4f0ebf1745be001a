"""
Home-Manager Strategy

Finds ``homeConfigurations."<user>@<host>"`` or ``homeConfigurations.<user>``
in the flake and runs the activation package's ``activate`` script.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..commands import Command
from ..errors import CommandExecutionError, ConfigurationError
from ..installable import FlakeInstallable, Installable
from ..util import get_hostname, get_username
from .base import ActivationMode, PlatformRebuildStrategy

logger = logging.getLogger(__name__)

HOME_NAMESPACE = "homeConfigurations"
TOPLEVEL_SUFFIX = ["config", "home", "activationPackage"]
SPECIALISATION_FILE = Path(".local/share/home-manager/specialisation")


@dataclass(frozen=True)
class HomeArgs:
    """Options specific to ``ng home``."""
    configuration: Optional[str] = None
    hostname: Optional[str] = None
    backup_extension: Optional[str] = None
    specialisation: Optional[str] = None
    no_specialisation: bool = False


def home_profile_path(user: Optional[str] = None, home: Optional[Path] = None) -> Optional[Path]:
    """Existing Home-Manager profile link, preferring the per-user profile."""
    user = user or get_username()
    home = home or Path.home()
    candidates = [
        Path("/nix/var/nix/profiles/per-user") / user / "home-manager",
        home / ".local/state/nix/profiles/home-manager",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


class HomeManagerPlatformStrategy(PlatformRebuildStrategy):

    name = "Home-Manager"
    args_type = HomeArgs
    toplevel_suffix = TOPLEVEL_SUFFIX

    def get_toplevel_installable(self, ctx, platform_args: HomeArgs) -> Installable:
        installable = ctx.common_args.installable
        if not isinstance(installable, FlakeInstallable):
            if installable.kind == "store":
                return installable
            return installable.with_attribute(installable.attribute + TOPLEVEL_SUFFIX)

        if installable.attribute:
            return installable

        if platform_args.configuration:
            candidates = [platform_args.configuration]
        else:
            user = get_username()
            candidates = [f"{user}@{get_hostname(platform_args.hostname)}", user]

        tried: List[str] = []
        for name in candidates:
            namespace = installable.with_attribute([HOME_NAMESPACE])
            probe = (
                Command("nix")
                .arg("eval")
                .args(ctx.extra_build_args())
                .args(["--apply", f'x: x ? "{name}"'])
                .args(namespace.to_args())
            )
            tried.append(" ".join(installable.with_attribute([HOME_NAMESPACE, name]).to_args()))
            try:
                answer = (probe.run_capture() or "").strip()
            except CommandExecutionError as e:
                logger.debug("Probe for %s failed: %s", name, e)
                continue
            if answer == "true":
                return installable.with_attribute([HOME_NAMESPACE, name] + TOPLEVEL_SUFFIX)

        raise ConfigurationError(
            f"Couldn't find home-manager configuration, tried {', '.join(tried)}"
        )

    def get_current_profile_path(self, ctx, platform_args: HomeArgs) -> Optional[Path]:
        return home_profile_path()

    def activate_configuration(self, ctx, platform_args: HomeArgs, built_path: Path,
                               mode: ActivationMode) -> None:
        if mode == ActivationMode.BUILD:
            return
        if mode != ActivationMode.SWITCH:
            raise ConfigurationError(f"Home-Manager does not support '{mode.value}' activation")

        target = Path(built_path)
        specialisation = self._target_specialisation(platform_args)
        if specialisation:
            target = target / "specialisation" / specialisation
        activate_script = target / "activate"
        if not activate_script.exists():
            raise ConfigurationError(f"activate script not found in built profile: {activate_script}")

        cmd = Command(activate_script).dry(ctx.dry_run).message("Activating configuration")
        if platform_args.backup_extension:
            logger.info("Using %s as the backup extension", platform_args.backup_extension)
            cmd.env("HOME_MANAGER_BACKUP_EXT", platform_args.backup_extension)
        cmd.run()

    def _target_specialisation(self, platform_args: HomeArgs) -> Optional[str]:
        """Explicit specialisation, else the currently active one."""
        if platform_args.no_specialisation:
            return None
        if platform_args.specialisation:
            return platform_args.specialisation
        spec_file = Path(os.environ.get("HOME", str(Path.home()))) / SPECIALISATION_FILE
        try:
            current = spec_file.read_text().strip()
        except OSError:
            return None
        return current or None
