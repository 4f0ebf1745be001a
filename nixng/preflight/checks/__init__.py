"""Individual pre-flight checks."""

from .syntax import SyntaxCheck
from .semantic import SemanticCheck
from .format import FormatCheck
from .external_linters import ExternalLintersCheck
from .git import GitStatusCheck

__all__ = [
    "SyntaxCheck",
    "SemanticCheck",
    "FormatCheck",
    "ExternalLintersCheck",
    "GitStatusCheck",
]
