"""
Operation Context

Normalized arguments and the per-invocation context handed to every
workflow stage, strategy and pre-flight check.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from .config import NgConfig
from .installable import Installable, resolve_installable
from .nix_interface import NixInterface


def resolve_strict(cli_value: Optional[bool], config_value: Optional[bool]) -> bool:
    """
    Merge a tri-state strictness flag.

    An explicit command-line value always wins, then the configuration
    value, then False.
    """
    if cli_value is not None:
        return cli_value
    if config_value is not None:
        return config_value
    return False


@dataclass(frozen=True)
class UpdateArgs:
    """Flake input update request."""
    update: bool = False
    inputs: Tuple[str, ...] = ()

    @property
    def requested(self) -> bool:
        return self.update or bool(self.inputs)


@dataclass(frozen=True)
class CommonRebuildArgs:
    """Normalized arguments shared by every platform's rebuild commands."""
    installable: Installable
    no_preflight: bool = False
    strict_lint: Optional[bool] = None
    strict_format: Optional[bool] = None
    medium: bool = False
    full: bool = False
    dry: bool = False
    ask: bool = False
    no_nom: bool = False
    out_link: Optional[Path] = None
    clean: bool = False
    extra_args: Tuple[str, ...] = ()

    @property
    def use_nom(self) -> bool:
        """Whether build logs go through the nix-output-monitor pretty printer."""
        return not self.no_nom


def build_common_args(
    platform: str,
    options: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> CommonRebuildArgs:
    """
    Normalize command-line options into CommonRebuildArgs.

    Pure function of its inputs; strictness flags keep their tri-state
    form and are merged with configuration by ``resolve_strict``.

    Args:
        platform: "os", "home" or "darwin"
        options: Parsed command-line options
        env: Environment mapping used for installable overrides
    """
    env = os.environ if env is None else env
    installable = resolve_installable(
        platform,
        installable=options.get("installable"),
        file=options.get("file"),
        expr=options.get("expr"),
        attribute=options.get("attribute"),
        env=env,
    )
    out_link = options.get("out_link")
    return CommonRebuildArgs(
        installable=installable,
        no_preflight=bool(options.get("no_preflight", False)),
        strict_lint=options.get("strict_lint"),
        strict_format=options.get("strict_format"),
        medium=bool(options.get("medium", False)),
        full=bool(options.get("full", False)),
        dry=bool(options.get("dry", False)),
        ask=bool(options.get("ask", False)),
        no_nom=bool(options.get("no_nom", False)),
        out_link=Path(out_link) if out_link else None,
        clean=bool(options.get("clean", False)),
        extra_args=tuple(options.get("extra_args") or ()),
    )


@dataclass(frozen=True)
class OperationContext:
    """Everything a single ng invocation needs, created once and never mutated."""
    common_args: CommonRebuildArgs
    nix_interface: NixInterface
    config: NgConfig = field(default_factory=NgConfig)
    update_args: UpdateArgs = field(default_factory=UpdateArgs)
    verbosity: int = 0
    project_root: Optional[Path] = None

    @property
    def dry_run(self) -> bool:
        return self.common_args.dry

    def effective_project_root(self) -> Path:
        """Directory scanned by the pre-flight checks."""
        return self.project_root or Path(".")

    def strict_lint(self) -> bool:
        return resolve_strict(self.common_args.strict_lint, self.config.pre_flight.strict_lint)

    def strict_format(self) -> bool:
        return resolve_strict(self.common_args.strict_format, self.config.pre_flight.strict_format)

    def extra_build_args(self) -> List[str]:
        return list(self.common_args.extra_args)
