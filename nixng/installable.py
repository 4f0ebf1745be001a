"""
Installables

Build-target references (flake, file, store path or expression) and the
attribute-path grammar shared by all of them.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

NIX_STORE_PREFIX = "/nix/store"
DEFAULT_FLAKE_REFERENCE = "."

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_'\-]*")
_IDENT_FULL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_'\-]*$")

# Per-platform flake overrides, consulted before the generic ones
PLATFORM_ENV_VARS = {
    "os": "NG_OS_FLAKE",
    "home": "NG_HOME_FLAKE",
    "darwin": "NG_DARWIN_FLAKE",
}


# ============================================================
# Attribute paths
# ============================================================

def parse_attribute(text: str) -> List[str]:
    """
    Parse a dotted attribute path.

    Segments are identifiers or double-quoted strings with backslash
    escapes, e.g. ``nixosConfigurations."my.host".config``.

    Raises:
        ConfigurationError: If the path is malformed
    """
    segments: List[str] = []
    if not text:
        return segments

    pos = 0
    length = len(text)
    while True:
        if pos >= length:
            raise ConfigurationError(f"Malformed attribute path '{text}': expected a segment at end")

        if text[pos] == '"':
            segment, pos = _read_quoted(text, pos)
        else:
            match = _IDENT_RE.match(text, pos)
            if not match:
                raise ConfigurationError(
                    f"Malformed attribute path '{text}': unexpected character {text[pos]!r} at {pos}"
                )
            segment = match.group(0)
            pos = match.end()

        segments.append(segment)

        if pos == length:
            return segments
        if text[pos] != ".":
            raise ConfigurationError(
                f"Malformed attribute path '{text}': expected '.' at {pos}, found {text[pos]!r}"
            )
        pos += 1


def _read_quoted(text: str, start: int) -> Tuple[str, int]:
    """Read a quoted segment starting at the opening quote."""
    chars: List[str] = []
    pos = start + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            if pos + 1 >= len(text):
                break
            chars.append(text[pos + 1])
            pos += 2
            continue
        if ch == '"':
            return "".join(chars), pos + 1
        chars.append(ch)
        pos += 1
    raise ConfigurationError(f"Malformed attribute path '{text}': unterminated quote")


def join_attribute(segments: List[str]) -> str:
    """Join segments, quoting any that are not plain identifiers."""
    parts = []
    for segment in segments:
        if _IDENT_FULL_RE.match(segment):
            parts.append(segment)
        else:
            escaped = segment.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'"{escaped}"')
    return ".".join(parts)


# ============================================================
# Installable variants
# ============================================================

@dataclass(frozen=True)
class Installable(ABC):
    """Base for build-target references."""

    kind = "installable"

    @property
    def attribute(self) -> List[str]:
        return []

    @abstractmethod
    def to_args(self) -> List[str]:
        """Arguments naming this target on a nix command line."""

    def with_attribute(self, attribute: List[str]) -> "Installable":
        """Return a copy targeting a different attribute path."""
        return self

    def __str__(self) -> str:
        return " ".join(self.to_args())


@dataclass(frozen=True)
class FlakeInstallable(Installable):
    reference: str
    attr_path: Tuple[str, ...] = field(default_factory=tuple)

    kind = "flake"

    @property
    def attribute(self) -> List[str]:
        return list(self.attr_path)

    def to_args(self) -> List[str]:
        if not self.attr_path:
            return [self.reference]
        return [f"{self.reference}#{join_attribute(list(self.attr_path))}"]

    def with_attribute(self, attribute: List[str]) -> "FlakeInstallable":
        return replace(self, attr_path=tuple(attribute))


@dataclass(frozen=True)
class FileInstallable(Installable):
    path: Path
    attr_path: Tuple[str, ...] = field(default_factory=tuple)

    kind = "file"

    @property
    def attribute(self) -> List[str]:
        return list(self.attr_path)

    def to_args(self) -> List[str]:
        args = ["--file", str(self.path)]
        if self.attr_path:
            args.append(join_attribute(list(self.attr_path)))
        return args

    def with_attribute(self, attribute: List[str]) -> "FileInstallable":
        return replace(self, attr_path=tuple(attribute))


@dataclass(frozen=True)
class StoreInstallable(Installable):
    path: Path

    kind = "store"

    def to_args(self) -> List[str]:
        return [str(self.path)]


@dataclass(frozen=True)
class ExpressionInstallable(Installable):
    expression: str
    attr_path: Tuple[str, ...] = field(default_factory=tuple)

    kind = "expression"

    @property
    def attribute(self) -> List[str]:
        return list(self.attr_path)

    def to_args(self) -> List[str]:
        args = ["--expr", self.expression]
        if self.attr_path:
            args.append(join_attribute(list(self.attr_path)))
        return args

    def with_attribute(self, attribute: List[str]) -> "ExpressionInstallable":
        return replace(self, attr_path=tuple(attribute))


# ============================================================
# Resolution
# ============================================================

def parse_flake_reference(value: str) -> FlakeInstallable:
    """Parse ``reference#attribute.path`` into a flake installable."""
    reference, _, attribute = value.partition("#")
    return FlakeInstallable(
        reference=reference or DEFAULT_FLAKE_REFERENCE,
        attr_path=tuple(parse_attribute(attribute)),
    )


def parse_installable_argument(value: str) -> Installable:
    """Interpret a positional installable from the command line."""
    if value.startswith(NIX_STORE_PREFIX + "/"):
        return StoreInstallable(path=Path(os.path.realpath(value)))
    return parse_flake_reference(value)


def resolve_installable(
    platform: str,
    installable: Optional[str] = None,
    file: Optional[str] = None,
    expr: Optional[str] = None,
    attribute: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Installable:
    """
    Determine the build target for a platform command.

    Command-line values win over environment overrides. The platform is
    passed in explicitly and selects which NG_*_FLAKE variable applies.

    Args:
        platform: One of "os", "home", "darwin"
        installable: Positional installable from the command line
        file: --file value
        expr: --expr value
        attribute: Attribute path accompanying --file/--expr
        env: Environment mapping (defaults to os.environ)

    Returns:
        The resolved Installable
    """
    env = os.environ if env is None else env
    attr_segments = tuple(parse_attribute(attribute or ""))

    if installable:
        return parse_installable_argument(installable)
    if file:
        return FileInstallable(path=Path(file), attr_path=attr_segments)
    if expr:
        return ExpressionInstallable(expression=expr, attr_path=attr_segments)

    platform_var = PLATFORM_ENV_VARS.get(platform)
    if platform_var and env.get(platform_var):
        logger.debug("Using %s=%s", platform_var, env[platform_var])
        return parse_flake_reference(env[platform_var])

    if env.get("NG_FLAKE"):
        logger.debug("Using NG_FLAKE=%s", env["NG_FLAKE"])
        return parse_flake_reference(env["NG_FLAKE"])

    if env.get("NG_FILE"):
        return FileInstallable(
            path=Path(env["NG_FILE"]),
            attr_path=tuple(parse_attribute(env.get("NG_ATTRP", ""))),
        )

    if env.get("FLAKE"):
        logger.warning("FLAKE is deprecated, set NG_FLAKE instead")
        return parse_flake_reference(env["FLAKE"])

    return FlakeInstallable(reference=DEFAULT_FLAKE_REFERENCE)
