"""
Analysis Service

Syntax and semantic analysis of Nix files, delegated to external tools.
The pre-flight checks only see the AnalysisService interface, so tests
can substitute an in-memory implementation.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .commands import Command, command_exists
from .diagnostics import NgDiagnostic, NgSeverity, sort_diagnostics
from .errors import DiagnosticToolError

logger = logging.getLogger(__name__)

PARSER_PROGRAM = "nix-instantiate"
SEMANTIC_PROGRAM = "nil"

_LOCATION_RE = re.compile(r"at (?:«[^»]*»|(?P<path>[^\s:]+)):(?P<line>\d+):(?P<col>\d+)")
_ARROW_LOCATION_RE = re.compile(r"-->\s*(?P<path>.+?):(?P<line>\d+):(?P<col>\d+)")
_HEADER_RE = re.compile(r"^(?P<level>error|warning|info|hint)(?:\[[^\]]*\])?:\s*(?P<message>.+)$")


class AnalysisService(ABC):
    """Produces diagnostics for a single Nix file."""

    name: str = "analysis"

    @abstractmethod
    def parse(self, path: Path) -> List[NgDiagnostic]:
        """
        Syntax-check a file.

        Returns:
            Syntax diagnostics (always error severity); empty if the file parses
        """
        pass

    @abstractmethod
    def semantic(self, path: Path) -> List[NgDiagnostic]:
        """
        Run semantic analysis on a syntactically valid file.

        Returns:
            Semantic diagnostics of any severity
        """
        pass

    def semantic_available(self) -> bool:
        """Whether semantic analysis can run on this machine."""
        return True


class NixToolAnalysisService(AnalysisService):
    """Uses ``nix-instantiate --parse`` for syntax and ``nil diagnostics`` for semantics."""

    name = "nix-tools"

    def __init__(self, parser: str = PARSER_PROGRAM, analyzer: str = SEMANTIC_PROGRAM):
        self.parser = parser
        self.analyzer = analyzer
        self._analyzer_available: Optional[bool] = None

    def parse(self, path: Path) -> List[NgDiagnostic]:
        result = Command(self.parser).args(["--parse", str(path)]).run_capture_output()
        if result.returncode == 0:
            return []
        try:
            diagnostics = parse_nix_error_output(result.stderr or "", path, source=self.parser)
        except DiagnosticToolError as e:
            logger.debug("Unparseable parser output for %s: %s", path, e)
            diagnostics = [synthetic_diagnostic(path, self.parser, e.raw_output)]
        return [
            NgDiagnostic(
                file_path=d.file_path,
                message=d.message,
                severity=NgSeverity.ERROR,
                line=d.line,
                column=d.column,
                source=d.source,
            )
            for d in diagnostics
        ]

    def semantic(self, path: Path) -> List[NgDiagnostic]:
        result = Command(self.analyzer).args(["diagnostics", str(path)]).run_capture_output()
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        diagnostics = parse_nil_diagnostics(output, path)
        if result.returncode != 0 and not diagnostics:
            diagnostics = [synthetic_diagnostic(path, self.analyzer, output)]
        return diagnostics

    def semantic_available(self) -> bool:
        if self._analyzer_available is None:
            self._analyzer_available = command_exists(self.analyzer)
        return self._analyzer_available


def parse_nix_error_output(stderr: str, default_path: Path, source: Optional[str] = None) -> List[NgDiagnostic]:
    """
    Extract diagnostics from nix error output.

    Handles both ``error: msg, at file:1:2`` and the multi-line form where
    the location follows on an indented ``at`` line.

    Raises:
        DiagnosticToolError: If no error message can be found
    """
    diagnostics: List[NgDiagnostic] = []
    lines = stderr.splitlines()
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped.startswith("error:"):
            continue
        message = stripped[len("error:"):].strip()
        location = _LOCATION_RE.search(message)
        if location:
            message = message[:location.start()].rstrip(" ,")
        else:
            for follow in lines[index + 1:index + 4]:
                location = _LOCATION_RE.search(follow)
                if location:
                    break
        file_path = default_path
        line_no = column = None
        if location:
            if location.group("path"):
                file_path = Path(location.group("path"))
            line_no = int(location.group("line"))
            column = int(location.group("col"))
        diagnostics.append(NgDiagnostic(
            file_path=file_path,
            message=message or "syntax error",
            severity=NgSeverity.ERROR,
            line=line_no,
            column=column,
            source=source,
        ))

    if not diagnostics:
        raise DiagnosticToolError(source or "nix", "no error message in output", raw_output=stderr)
    return diagnostics


def parse_nil_diagnostics(output: str, default_path: Path) -> List[NgDiagnostic]:
    """Parse ``nil diagnostics`` output into diagnostics."""
    diagnostics: List[NgDiagnostic] = []
    pending: Optional[Dict[str, str]] = None

    def flush(location=None) -> None:
        if pending is None:
            return
        file_path = Path(location.group("path")) if location else default_path
        diagnostics.append(NgDiagnostic(
            file_path=file_path,
            message=pending["message"],
            severity=NgSeverity.from_label(pending["level"]),
            line=int(location.group("line")) if location else None,
            column=int(location.group("col")) if location else None,
            source=SEMANTIC_PROGRAM,
        ))

    for line in output.splitlines():
        header = _HEADER_RE.match(line.strip())
        if header:
            flush()
            pending = {"level": header.group("level"), "message": header.group("message")}
            continue
        location = _ARROW_LOCATION_RE.search(line)
        if location and pending is not None:
            flush(location)
            pending = None
    flush()
    return diagnostics


def synthetic_diagnostic(path: Path, tool: str, raw_output: str) -> NgDiagnostic:
    """Single error standing in for output that could not be parsed."""
    summary = " ".join(raw_output.split())
    if len(summary) > 300:
        summary = summary[:297] + "..."
    return NgDiagnostic(
        file_path=path,
        message=f"{tool} failed with unparseable output: {summary or '<no output>'}",
        severity=NgSeverity.ERROR,
        source=tool,
    )


def parse_files_parallel(service: AnalysisService, files: Sequence[Path]) -> Dict[Path, List[NgDiagnostic]]:
    """
    Syntax-check files concurrently.

    Returns:
        Mapping of file to its syntax diagnostics, keyed in sorted path order
    """
    if not files:
        return {}
    workers = min(len(files), os.cpu_count() or 1)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(service.parse, files))
    return {
        path: sort_diagnostics(diags)
        for path, diags in sorted(zip(files, results), key=lambda item: str(item[0]))
    }
