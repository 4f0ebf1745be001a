"""
Lint and Format Commands

Standalone formatter and linter runs behind ``ng lint`` and ``ng format``,
either checking or applying fixes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .commands import Command, command_exists
from .config import NgConfig
from .errors import CommandExecutionError
from .util import find_nix_files

logger = logging.getLogger(__name__)

FORMATTER_CANDIDATES = ["nixfmt", "alejandra", "nixpkgs-fmt"]


class CheckStatus(str, Enum):
    """Status of one tool in a lint run."""
    PASSED = "Passed"
    FAILED = "Failed"
    WARNINGS = "Warnings"
    SKIPPED = "Skipped"


class LintOutcome(str, Enum):
    PASSED = "Passed"
    WARNINGS = "Warnings"
    CRITICAL_FAILURE = "CriticalFailure"


_STATUS_DETAILS = {
    CheckStatus.PASSED: "No issues found",
    CheckStatus.FAILED: "See error output above for details",
    CheckStatus.SKIPPED: "Tool not installed or check disabled",
    CheckStatus.WARNINGS: "Completed with warnings",
}


@dataclass
class LintSummary:
    """Result of a lint run."""
    outcome: LintOutcome = LintOutcome.PASSED
    details: Dict[str, CheckStatus] = field(default_factory=dict)
    message: str = ""
    files_formatted: int = 0
    fixes_applied: int = 0

    @property
    def failed(self) -> bool:
        return self.outcome == LintOutcome.CRITICAL_FAILURE

    def to_table(self) -> Table:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Linter")
        table.add_column("Status")
        table.add_column("Details")
        for name in sorted(self.details):
            status = self.details[name]
            color = {
                CheckStatus.PASSED: "green",
                CheckStatus.FAILED: "red",
                CheckStatus.WARNINGS: "yellow",
                CheckStatus.SKIPPED: "dim",
            }[status]
            table.add_row(name, f"[{color}]{status.value}[/{color}]", _STATUS_DETAILS[status])
        return table


def select_formatter(config: Optional[NgConfig] = None) -> Optional[str]:
    """Configured formatter if it exists, else the first installed candidate."""
    configured = None
    if config is not None and config.pre_flight.format.tool not in (None, "auto"):
        configured = config.pre_flight.format.tool
    candidates = [configured] if configured else FORMATTER_CANDIDATES
    for candidate in candidates:
        if command_exists(candidate):
            return candidate
    return None


def run_lint(
    project_root: Path,
    config: Optional[NgConfig] = None,
    fix: bool = False,
    strict: bool = False,
    verbosity: int = 0,
) -> LintSummary:
    """
    Run the formatter, statix and deadnix over a project.

    Args:
        project_root: Directory to lint
        config: Loaded configuration (formatter and linter paths)
        fix: Apply fixes instead of only checking
        strict: Any tool failure makes the outcome a critical failure

    Returns:
        LintSummary describing each tool's result
    """
    config = config or NgConfig()
    summary = LintSummary()
    root = Path(project_root)

    files = find_nix_files(root)
    if not files:
        summary.message = "No .nix files found."
        return summary

    failures: List[str] = []

    formatter = select_formatter(config)
    if formatter is None:
        summary.details["Format"] = CheckStatus.SKIPPED
        logger.warning("No Nix formatter found. Consider installing %s.", ", ".join(FORMATTER_CANDIDATES))
    else:
        name = f"Format ({formatter})"
        status, count = _run_formatter(formatter, files, fix, verbosity)
        summary.details[name] = status
        summary.files_formatted += count
        if status != CheckStatus.PASSED:
            failures.append(name)

    linters = config.pre_flight.external_linters
    for linter, fix_args, check_args in (
        ("statix", ["fix", str(root)], ["check", str(root)]),
        ("deadnix", ["-e", str(root)], ["--fail", str(root)]),
    ):
        program = linters.path_for(linter)
        label = linter.capitalize() + (" Fix" if fix else "")
        if not command_exists(program):
            summary.details[label] = CheckStatus.SKIPPED
            logger.debug("%s not found, skipping", linter)
            continue
        cmd = Command(program).args(fix_args if fix else check_args).add_verbosity_flags(verbosity)
        try:
            cmd.run()
        except CommandExecutionError as e:
            logger.warning("%s failed: %s", label, e)
            summary.details[label] = CheckStatus.WARNINGS
            failures.append(label)
            continue
        summary.details[label] = CheckStatus.PASSED
        if fix:
            summary.fixes_applied += 1

    if failures:
        summary.outcome = LintOutcome.CRITICAL_FAILURE if strict else LintOutcome.WARNINGS
        if strict:
            for name in failures:
                summary.details[name] = CheckStatus.FAILED
    verb = "formatted" if fix else "need formatting"
    summary.message = (
        f"Lint phase completed. {summary.files_formatted} files {verb}, "
        f"{summary.fixes_applied} fixes applied."
    )
    return summary


def _run_formatter(formatter: str, files: List[Path], fix: bool, verbosity: int):
    """Returns (status, number of files formatted or needing formatting)."""
    if fix:
        try:
            Command(formatter).args([str(f) for f in files]).run()
        except CommandExecutionError as e:
            logger.warning("Formatter %s failed: %s", formatter, e)
            return CheckStatus.WARNINGS, 0
        return CheckStatus.PASSED, len(files)

    unformatted = 0
    for path in files:
        result = Command(formatter).args(["--check", str(path)]).run_capture_output()
        if result.returncode != 0:
            logger.warning("Needs formatting: %s", path)
            unformatted += 1
    return (CheckStatus.WARNINGS if unformatted else CheckStatus.PASSED), unformatted


def run_format(path: Path, apply: bool = True, config: Optional[NgConfig] = None) -> List[Path]:
    """
    Format (or check) a file or directory.

    Returns:
        Files that were formatted, or that need formatting when apply is False

    Raises:
        CommandExecutionError: If no formatter is installed
    """
    path = Path(path)
    formatter = select_formatter(config)
    if formatter is None:
        raise CommandExecutionError(
            f"No Nix formatter found (tried {', '.join(FORMATTER_CANDIDATES)})"
        )

    files = find_nix_files(path)
    if not files:
        logger.info("No .nix files found under %s", path)
        return []

    if apply:
        Command(formatter).args([str(f) for f in files]).message(
            f"Formatting {len(files)} file(s) with {formatter}"
        ).run()
        return files

    needs = []
    for file in files:
        if Command(formatter).args(["--check", str(file)]).run_capture_output().returncode != 0:
            needs.append(file)
    return needs


def print_summary(summary: LintSummary, console: Optional[Console] = None) -> None:
    console = console or Console()
    if summary.details:
        console.print(summary.to_table())
    console.print(summary.message)
