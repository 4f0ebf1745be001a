"""
Failure Reporting

Renders diagnostics and aborted-stage reports on stderr, and derives
recommendations from nix error output.
"""

import logging
import re
from itertools import groupby
from typing import Iterable, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .commands import Command
from .diagnostics import NgDiagnostic, NgSeverity, sort_diagnostics
from .errors import CommandExecutionError

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)

RE_EVAL_ERROR = re.compile(r"error: (.*) at (.*?):(\d+):(\d+)")
RE_BUILDER_FAILED = re.compile(r"error: builder for '(/nix/store/.*?\.drv)' failed")
RE_MISSING_PACKAGE = re.compile(r"package.*not found")
RE_PERMISSION_ERROR = re.compile(r"permission denied")
RE_NETWORK_ERROR = re.compile(r"(network|connection|timeout)")

SYNTAX_STAGES = ("Parse Check", "Nix Syntax Parse")

_SEVERITY_STYLE = {
    NgSeverity.ERROR: "bold red",
    NgSeverity.WARNING: "bold yellow",
}


# ============================================================
# Diagnostics
# ============================================================

def report_ng_diagnostics(
    check_name: str,
    diagnostics: Iterable[NgDiagnostic],
    console: Optional[Console] = None,
) -> None:
    """Print diagnostics grouped by file, sorted by path and position."""
    diagnostics = sort_diagnostics(diagnostics)
    if not diagnostics:
        return
    console = console or err_console

    console.print()
    console.print(f"[bold underline]{escape(check_name)} Found Issues:[/bold underline]", soft_wrap=True)
    for file_path, group in groupby(diagnostics, key=lambda d: str(d.file_path)):
        console.print(f"[cyan]{escape(file_path)}[/cyan]", soft_wrap=True)
        for diag in group:
            style = _SEVERITY_STYLE[diag.severity]
            line = (
                f"  \\[[{style}]{diag.severity.value}[/{style}]] "
                f"{escape(diag.location())} - {escape(diag.message)}"
            )
            if diag.source:
                line += f" [dim]({escape(diag.source)})[/dim]"
            console.print(line, soft_wrap=True)
    console.print()


# ============================================================
# Aborted stage report
# ============================================================

def report_failure(
    stage: str,
    reason: str,
    details: Optional[str] = None,
    recommendations: Optional[List[str]] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Print the structured abort block.

    Args:
        stage: Workflow stage that failed
        reason: One-line reason
        details: Raw tool output or logs
        recommendations: Hints to show; derived from details when omitted
    """
    console = console or err_console

    if stage in SYNTAX_STAGES and details:
        recommendations = generate_syntax_error_recommendations(details)
    elif recommendations is None:
        recommendations = scan_log_for_recommendations(details) if details else []

    body = [f"[bold red]✗ {escape(reason)}[/bold red]"]
    if details:
        body.append("")
        body.append(escape(details.strip()))
    if recommendations:
        body.append("")
        body.append("[bold blue]Possible Issues & Recommendations:[/bold blue]")
        body.extend(f"  • {escape(rec)}" for rec in recommendations)

    console.print()
    console.print(Panel(
        "\n".join(body),
        title=f"[bold]NG COMMAND ABORTED at Stage: {escape(stage)}[/bold]",
        border_style="red",
        expand=False,
    ))


# ============================================================
# Nix output analysis
# ============================================================

def parse_nix_eval_error(stderr: str) -> Optional[Tuple[str, str, int, int]]:
    """
    Find the first ``error: msg at file:line:col`` in nix output.

    Returns:
        (message, file, line, column) or None
    """
    match = RE_EVAL_ERROR.search(stderr)
    if not match:
        return None
    return match.group(1), match.group(2), int(match.group(3)), int(match.group(4))


def find_failed_derivations(stderr: str) -> List[str]:
    """Derivation paths whose builder failed."""
    return RE_BUILDER_FAILED.findall(stderr)


def fetch_nix_log(drv_path: str, verbosity: int = 0) -> str:
    """
    Fetch the build log of a derivation with ``nix log``.

    Raises:
        CommandExecutionError: If nix log fails or prints nothing
    """
    logger.info("Fetching build log for %s", drv_path)
    stdout = Command("nix").args(["log", drv_path]).add_verbosity_flags(verbosity).run_capture()
    if not stdout:
        raise CommandExecutionError(f"nix log for {drv_path} did not produce stdout",
                                    command=f"nix log {drv_path}")
    return f"── BUILD LOG FOR: {drv_path} ──\n{stdout.strip()}"


def collect_build_failure_details(error: CommandExecutionError, verbosity: int = 0) -> Optional[str]:
    """
    Gather the captured output of a failed build plus logs of failed derivations.

    Returns:
        Combined text, or None if nothing was captured
    """
    output = error.output
    if not output:
        return None

    sections = [output.strip()]
    for drv in find_failed_derivations(output):
        try:
            sections.append(fetch_nix_log(drv, verbosity))
        except CommandExecutionError as e:
            logger.warning("Could not fetch build log for %s: %s", drv, e)
    return "\n\n".join(sections)


def scan_log_for_recommendations(log_content: str) -> List[str]:
    """Suggest fixes based on patterns in a log."""
    recommendations = []

    if RE_MISSING_PACKAGE.search(log_content):
        recommendations.append("A package dependency appears to be missing. Check your inputs and package names.")
    if RE_PERMISSION_ERROR.search(log_content):
        recommendations.append("Permission errors detected. Check file permissions or if you need elevated privileges.")
    if RE_NETWORK_ERROR.search(log_content):
        recommendations.append("Network-related errors detected. Check your internet connection or proxy settings.")
    if "error: attribute" in log_content:
        recommendations.append("An attribute error was detected. Verify that all attribute paths exist in your configuration.")
    if "syntax error" in log_content:
        recommendations.append("Syntax errors detected. Check for missing semicolons, brackets, or other syntax issues.")

    if not recommendations:
        recommendations.append("Review the full log for specific error details.")
        recommendations.append("Check that nix is installed and the configuration evaluates with 'nix eval'.")

    return recommendations


# (patterns, recommendation); first match wins
_SYNTAX_HINTS = [
    (("unexpected end of file, expecting INHERIT", "unexpected end of file, expecting }",
      "unexpected end of file, expecting '}'"),
     "Add missing closing brace '}' to complete the attribute set"),
    (("unexpected end of file, expecting ]", "unexpected end of file, expecting ']'"),
     "Add missing closing bracket ']' to complete the list"),
    (("unexpected end of file, expecting )", "unexpected end of file, expecting ')'"),
     "Add missing closing parenthesis ')' to complete the expression"),
    (("unexpected ;", "unexpected ';'"),
     "Remove extra semicolon ';' or add an expression after it"),
    (("unexpected =", "unexpected '='"),
     "Check attribute name before '=' or ensure proper nesting of attribute sets"),
    (("unexpected }", "unexpected '}'"),
     "Remove extra closing brace '}' or add a matching opening brace"),
    (("unexpected ]", "unexpected ']'"),
     "Remove extra closing bracket ']' or add a matching opening bracket"),
    (("unexpected )", "unexpected ')'"),
     "Remove extra closing parenthesis ')' or add a matching opening parenthesis"),
    (("unexpected in", "unexpected 'in'"),
     "Ensure 'let' expression has a matching 'in' keyword"),
    (("unexpected let", "unexpected 'let'"),
     "Ensure 'let' expression is properly formatted with 'in' keyword"),
]


def generate_syntax_error_recommendations(error_details: str) -> List[str]:
    """Concrete hints for a Nix syntax error message."""
    recommendations = []
    for patterns, hint in _SYNTAX_HINTS:
        if any(p in error_details for p in patterns):
            recommendations.append(hint)
            break
    else:
        recommendations.append("Fix the syntax error according to the error message")

    recommendations.append(
        "Consider using a Nix formatter like 'alejandra' or 'nixpkgs-fmt' to automatically fix formatting issues"
    )
    return recommendations
