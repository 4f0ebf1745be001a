"""
Git status check: warns about untracked Nix files that a flake build
would not see. Never critical.
"""

import logging
from typing import Any, List

from rich.console import Console
from rich.table import Table

from ...commands import Command
from ...errors import CommandExecutionError
from ..models import CheckStatusReport, PreFlightCheck

logger = logging.getLogger(__name__)


class GitStatusCheck(PreFlightCheck):

    name = "Git Status"

    def run(self, ctx, strategy, platform_args: Any) -> CheckStatusReport:
        root = ctx.effective_project_root()
        if not (root / ".git").exists():
            logger.debug("%s is not a git work tree, skipping git check", root)
            return CheckStatusReport.PASSED

        try:
            stdout = Command("git").args(["status", "--porcelain=v1"]).cwd(root).run_capture() or ""
        except CommandExecutionError as e:
            logger.warning("'git status' failed, unable to check for untracked files: %s", e)
            return CheckStatusReport.PASSED_WITH_WARNINGS

        untracked = untracked_nix_files(stdout)
        lock_ignored = (root / "flake.lock").exists() and _is_ignored(root, "flake.lock")

        if not untracked and not lock_ignored:
            return CheckStatusReport.PASSED

        if untracked:
            table = Table(title="Untracked files", show_header=True, header_style="bold yellow")
            table.add_column("File")
            for path in untracked:
                table.add_row(path)
            Console(stderr=True).print(table)
            logger.warning(
                "These files are not tracked by git and will not be part of the flake build. "
                "Consider 'git add' if they are needed."
            )
        if lock_ignored:
            logger.warning("flake.lock is ignored by git (.gitignore)")
        return CheckStatusReport.PASSED_WITH_WARNINGS


def untracked_nix_files(porcelain: str) -> List[str]:
    """Untracked .nix files and flake.lock from ``git status --porcelain=v1``."""
    files = []
    for line in porcelain.splitlines():
        if line.startswith("??") and (line.endswith(".nix") or line.endswith("flake.lock")):
            files.append(line[3:].strip())
    return files


def _is_ignored(root, name: str) -> bool:
    result = Command("git").args(["check-ignore", "-q", name]).cwd(root).run_capture_output()
    return result.returncode == 0
