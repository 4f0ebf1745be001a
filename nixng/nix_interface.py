"""
Build Interface

Builds configurations, runs garbage collection and the other nix
operations the workflow needs. Dry-run placeholder paths live here.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .commands import Command, run_piped
from .errors import CommandExecutionError
from .installable import Installable

logger = logging.getLogger(__name__)

# Returned by dry-run builds when no real path can be inferred; never dereference it
DRY_RUN_PLACEHOLDER_PATH = Path("/dry_run_build_no_actual_path")
DEFAULT_OUT_LINK = Path("result")


class NixInterface:
    """
    Thin wrapper around the nix CLI.

    Args:
        verbosity: Number of -v flags to forward
        dry_run: Simulate every operation without spawning processes
    """

    def __init__(self, verbosity: int = 0, dry_run: bool = False):
        self.verbosity = verbosity
        self.dry_run = dry_run

    def build_configuration(
        self,
        installable: Installable,
        extra_args: Sequence[str] = (),
        use_pretty_printer: bool = False,
        out_link: Optional[Path] = None,
    ) -> Path:
        """
        Build an installable and return the resulting store path or link.

        Args:
            installable: Target to build
            extra_args: Additional arguments passed to nix build
            use_pretty_printer: Pipe the build log through nom
            out_link: Where to create the result symlink

        Returns:
            Path to the build result

        Raises:
            CommandExecutionError: If the build fails or prints no output path
        """
        args: List[str] = ["build"] + installable.to_args()
        capture = False

        if out_link is not None:
            args += ["--out-link", str(out_link)]
        elif not use_pretty_printer:
            args.append("--no-link")
            if not self.dry_run:
                args.append("--print-out-paths")
                capture = True
        args += list(extra_args)

        if self.dry_run:
            logger.info("Dry-run: nix %s", " ".join(args))
            if out_link is not None:
                return Path(out_link)
            if not use_pretty_printer:
                return DEFAULT_OUT_LINK
            return DRY_RUN_PLACEHOLDER_PATH

        if use_pretty_printer:
            build = (
                Command("nix")
                .args(args)
                .args(["--log-format", "internal-json", "--verbose"])
                .add_verbosity_flags(self.verbosity)
            )
            run_piped(build, Command("nom").arg("--json"))
            return Path(out_link) if out_link is not None else DEFAULT_OUT_LINK

        cmd = (
            Command("nix")
            .args(args)
            .add_verbosity_flags(self.verbosity)
            .message(f"Building {installable}")
        )
        if not capture:
            cmd.run()
            return Path(out_link) if out_link is not None else DEFAULT_OUT_LINK

        stdout = cmd.run_capture() or ""
        for line in stdout.splitlines():
            if line.strip():
                return Path(line.strip())
        raise CommandExecutionError(
            "nix build produced no parsable output path",
            command=cmd.to_command_string(),
            stdout=stdout,
        )

    def run_gc(self, force_dry_run: bool = False) -> None:
        """Collect garbage in the nix store (elevated)."""
        cmd = (
            Command("nix")
            .args(["store", "gc"])
            .add_verbosity_flags(self.verbosity)
            .elevate(True)
            .message("Running nix store garbage collection")
        )
        if force_dry_run or self.dry_run:
            logger.info("Dry-run: would run %s", cmd.to_command_string())
            return
        cmd.run()

    def update_flake_inputs(self, reference: str, inputs: Sequence[str] = ()) -> None:
        """Update all flake inputs, or only the named ones."""
        what = ", ".join(inputs) if inputs else "all inputs"
        (
            Command("nix")
            .args(["flake", "update"])
            .args(list(inputs))
            .args(["--flake", reference])
            .add_verbosity_flags(self.verbosity)
            .dry(self.dry_run)
            .message(f"Updating flake lock ({what})")
            .run()
        )

    def run_diff(self, current: Path, new: Path) -> None:
        """Show package differences between two closures with nvd."""
        (
            Command("nvd")
            .arg("diff")
            .args([str(current), str(new)])
            .add_verbosity_flags(self.verbosity)
            .message("Comparing changes")
            .run()
        )

    def run_repl(self, installable: Installable) -> None:
        """Open a nix repl on the given target."""
        Command("nix").arg("repl").args(installable.to_args()).run()
