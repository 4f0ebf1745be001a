"""
Diagnostic Model

Uniform record for issues found by the syntax parser, the semantic
analyzer and the external linters.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional


class NgSeverity(str, Enum):
    """Severity of a diagnostic."""
    ERROR = "Error"
    WARNING = "Warning"

    @classmethod
    def from_label(cls, label: str) -> "NgSeverity":
        """Map a tool's severity label; anything not an error is a warning."""
        if label.strip().lower() in ("error", "err", "fatal"):
            return cls.ERROR
        return cls.WARNING


@dataclass(frozen=True)
class NgDiagnostic:
    """A single issue at a location in a Nix file."""
    file_path: Path
    message: str
    severity: NgSeverity = NgSeverity.ERROR
    line: Optional[int] = None
    column: Optional[int] = None
    source: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == NgSeverity.ERROR

    def location(self) -> str:
        """``path:line:col``, omitting unknown parts."""
        loc = str(self.file_path)
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        return loc

    def sort_key(self):
        return (str(self.file_path), self.line or 0, self.column or 0, self.message)

    def __str__(self) -> str:
        text = f"[{self.severity.value}] {self.location()} - {self.message}"
        if self.source:
            text += f" ({self.source})"
        return text


def sort_diagnostics(diagnostics: Iterable[NgDiagnostic]) -> List[NgDiagnostic]:
    """Stable ordering by path, line and column."""
    return sorted(diagnostics, key=NgDiagnostic.sort_key)


def has_errors(diagnostics: Iterable[NgDiagnostic]) -> bool:
    return any(d.is_error for d in diagnostics)
