"""
External linter output parsing.

statix emits JSON; deadnix is read as ``file:line:col: message`` lines.
Output that cannot be understood becomes one synthetic error so that a
failing linter is never silently ignored.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..analysis import synthetic_diagnostic
from ..diagnostics import NgDiagnostic, NgSeverity
from ..errors import DiagnosticToolError

logger = logging.getLogger(__name__)

DEADNIX_LINE_RE = re.compile(r"^(.+?):(\d+):(\d+): (.*)$")


def default_linter_args(linter: str, root: Path) -> List[str]:
    """Check-mode arguments used when the configuration gives none."""
    if linter == "statix":
        return ["check", "-o", "json", str(root)]
    if linter == "deadnix":
        return ["--fail", str(root)]
    raise ValueError(f"Unknown linter: {linter}")


def parse_statix_output(stdout: str, root: Path) -> List[NgDiagnostic]:
    """
    Parse statix JSON.

    Accepts a flat list of ``{message, file, severity, position}`` entries
    and statix's per-file ``{file, report: [...]}`` form.

    Raises:
        DiagnosticToolError: If the output is not the expected JSON
    """
    text = stdout.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DiagnosticToolError("statix", f"invalid JSON output: {e}", raw_output=stdout)

    entries = data if isinstance(data, list) else [data]
    diagnostics: List[NgDiagnostic] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise DiagnosticToolError("statix", "unexpected JSON structure", raw_output=stdout)
        if "report" in entry:
            diagnostics.extend(_statix_report_entries(entry, root, stdout))
        else:
            diagnostics.append(_statix_flat_entry(entry, root, stdout))
    return diagnostics


def _statix_flat_entry(entry: Dict[str, Any], root: Path, raw: str) -> NgDiagnostic:
    try:
        position = entry.get("position") or {}
        return NgDiagnostic(
            file_path=Path(entry.get("file") or root),
            message=entry["message"],
            severity=NgSeverity.from_label(entry.get("severity", "error")),
            line=position.get("start_line"),
            column=position.get("start_col"),
            source="statix",
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise DiagnosticToolError("statix", f"malformed diagnostic entry: {e}", raw_output=raw)


def _statix_report_entries(entry: Dict[str, Any], root: Path, raw: str) -> List[NgDiagnostic]:
    diagnostics = []
    try:
        file_path = Path(entry.get("file") or root)
        for report in entry.get("report") or []:
            severity = NgSeverity.from_label(str(report.get("severity", "error")))
            note = report.get("note", "")
            for diag in report.get("diagnostics") or [{}]:
                start = ((diag.get("at") or {}).get("from") or {})
                diagnostics.append(NgDiagnostic(
                    file_path=file_path,
                    message=diag.get("message") or note or "statix issue",
                    severity=severity,
                    line=start.get("line"),
                    column=start.get("column"),
                    source="statix",
                ))
    except (KeyError, TypeError, AttributeError) as e:
        raise DiagnosticToolError("statix", f"malformed report entry: {e}", raw_output=raw)
    return diagnostics


def parse_deadnix_output(stdout: str) -> List[NgDiagnostic]:
    """Parse ``file:line:col: message`` records; other lines are ignored."""
    diagnostics = []
    for line in stdout.splitlines():
        match = DEADNIX_LINE_RE.match(line.strip())
        if not match:
            continue
        diagnostics.append(NgDiagnostic(
            file_path=Path(match.group(1)),
            message=match.group(4),
            severity=NgSeverity.ERROR,
            line=int(match.group(2)),
            column=int(match.group(3)),
            source="deadnix",
        ))
    return diagnostics


def parse_linter_output(
    linter: str,
    returncode: int,
    stdout: str,
    stderr: str,
    root: Path,
) -> List[NgDiagnostic]:
    """
    Turn a linter run into diagnostics.

    A non-zero exit that yields no parsable diagnostics is reported as a
    single synthetic error carrying the raw output.
    """
    diagnostics: Optional[List[NgDiagnostic]]
    try:
        if linter == "statix":
            diagnostics = parse_statix_output(stdout, root)
        else:
            diagnostics = parse_deadnix_output(stdout)
    except DiagnosticToolError as e:
        logger.debug("Could not parse %s output: %s", linter, e)
        diagnostics = None

    if diagnostics is None or (returncode != 0 and not diagnostics):
        raw = "\n".join(part for part in (stdout, stderr) if part)
        return [synthetic_diagnostic(root, linter, raw)]
    return diagnostics
