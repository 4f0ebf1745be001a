"""
Command-line interface for ng.

Rebuilds NixOS, nix-darwin and Home-Manager configurations with
pre-flight checks, and provides standalone lint and format commands.
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
from rich.console import Console

from . import __version__
from .commands import command_exists
from .config import NgConfig, load_config
from .context import OperationContext, UpdateArgs, build_common_args, resolve_strict
from .errors import NgError, StageFailure, UserRejected
from .installable import FlakeInstallable, Installable
from .lint import print_summary, run_format, run_lint
from .logging_config import setup_logging
from .nix_interface import NixInterface
from .platforms import (
    ActivationMode,
    DarwinArgs,
    DarwinPlatformStrategy,
    HomeArgs,
    HomeManagerPlatformStrategy,
    NixosArgs,
    NixosPlatformStrategy,
    PlatformRebuildStrategy,
)
from .reporter import report_failure
from .workflow import execute_rebuild_workflow

logger = logging.getLogger(__name__)

console = Console()


# ============================================================
# Main CLI Group
# ============================================================

@click.group()
@click.version_option(version=__version__, prog_name="ng")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (repeatable)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (default: ng.toml / ng.yaml in the project)",
)
@click.pass_context
def cli(ctx, verbose: int, config_path: Optional[str]):
    """
    ng - Nix rebuild helper

    Build and activate NixOS, nix-darwin and Home-Manager configurations
    with syntax, semantic, format and lint checks up front.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    setup_logging(verbose)


# ============================================================
# Shared rebuild options
# ============================================================

def rebuild_options(func: Callable) -> Callable:
    """Options common to every platform's switch/boot/test/build."""
    options = [
        click.argument("installable", required=False),
        click.option("-f", "--file", help="Build from a Nix file instead of a flake"),
        click.option("-E", "--expr", help="Build from a Nix expression"),
        click.option("-A", "--attr", "attribute", help="Attribute path for --file/--expr"),
        click.option("-H", "--hostname", help="Host to build (default: this machine)"),
        click.option("--no-preflight", is_flag=True, help="Skip pre-flight checks"),
        click.option("--strict-lint/--no-strict-lint", default=None,
                     help="Treat semantic and linter errors as fatal"),
        click.option("--strict-format/--no-strict-format", default=None,
                     help="Treat unformatted files as fatal"),
        click.option("--medium", is_flag=True, help="Run the medium check tier"),
        click.option("--full", is_flag=True, help="Run the full check tier"),
        click.option("-n", "--dry", is_flag=True, help="Show what would be done without doing it"),
        click.option("-a", "--ask", is_flag=True, help="Ask for confirmation before activating"),
        click.option("--no-nom", is_flag=True, help="Do not pipe build logs through nom"),
        click.option("-o", "--out-link", type=click.Path(), help="Keep a result symlink here"),
        click.option("--clean", is_flag=True, help="Garbage-collect the store afterwards"),
        click.option("-u", "--update", is_flag=True, help="Update all flake inputs first"),
        click.option("--update-input", multiple=True, help="Update only this flake input (repeatable)"),
        click.argument("extra_args", nargs=-1, type=click.UNPROCESSED),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _project_root(installable: Installable) -> Path:
    """Local directory of a path-like flake reference, else the working directory."""
    if isinstance(installable, FlakeInstallable):
        reference = installable.reference
        if reference.startswith("path:"):
            reference = reference[len("path:"):]
        candidate = Path(reference).expanduser()
        if "://" not in reference and ":" not in reference.split("/")[0] and candidate.is_dir():
            return candidate
    return Path.cwd()


def _split_extra_args(options: Dict[str, Any]) -> Dict[str, Any]:
    """A leading option-like positional is a nix flag, not an installable."""
    installable = options.get("installable")
    if installable and installable.startswith("-"):
        options = dict(options)
        options["extra_args"] = (installable,) + tuple(options.get("extra_args") or ())
        options["installable"] = None
    return options


def _load_config(click_ctx, project_root: Path) -> NgConfig:
    return load_config(click_ctx.obj.get("config_path"), project_root=project_root)


def _build_context(click_ctx, platform: str, options: Dict[str, Any]) -> OperationContext:
    verbosity = click_ctx.obj.get("verbose", 0)
    options = _split_extra_args(options)
    common = build_common_args(platform, options)
    if common.use_nom and not common.dry and not command_exists("nom"):
        logger.warning("nom not found, falling back to plain nix build output")
        common = replace(common, no_nom=True)

    project_root = _project_root(common.installable)
    return OperationContext(
        common_args=common,
        nix_interface=NixInterface(verbosity=verbosity, dry_run=common.dry),
        config=_load_config(click_ctx, project_root),
        update_args=UpdateArgs(update=options.get("update", False),
                               inputs=tuple(options.get("update_input") or ())),
        verbosity=verbosity,
        project_root=project_root,
    )


def _handle_failure(error: NgError) -> None:
    """Render an aborting error and exit non-zero."""
    if isinstance(error, UserRejected):
        Console(stderr=True).print(f"[yellow]{error}[/yellow]")
    elif isinstance(error, StageFailure):
        report_failure(error.stage, str(error), error.details, error.recommendations or None)
    else:
        report_failure("Setup", str(error))
    sys.exit(1)


def _rebuild(click_ctx, platform: str, strategy: PlatformRebuildStrategy,
             platform_args: Any, mode: ActivationMode, options: Dict[str, Any]) -> None:
    try:
        op_ctx = _build_context(click_ctx, platform, options)
        built = execute_rebuild_workflow(op_ctx, strategy, platform_args, mode)
    except NgError as e:
        _handle_failure(e)
        return

    if mode == ActivationMode.BUILD:
        console.print(f"[green]Build complete:[/green] {built}")
    else:
        console.print(f"[green]{strategy.name} {mode.value} complete.[/green]")


def _repl(click_ctx, platform: str, strategy: PlatformRebuildStrategy,
          platform_args: Any, options: Dict[str, Any]) -> None:
    try:
        op_ctx = _build_context(click_ctx, platform, options)
        installable = strategy.get_repl_installable(op_ctx, platform_args)
        op_ctx.nix_interface.run_repl(installable)
    except NgError as e:
        _handle_failure(e)


def _register_platform(group: click.Group, platform: str, strategy_cls,
                       make_args: Callable[[Dict[str, Any]], Any], extra_options=()) -> None:
    """Attach switch/boot/test/build/repl to a platform group."""

    def make_command(mode: ActivationMode):
        @click.pass_context
        def command(ctx, **options):
            _rebuild(ctx, platform, strategy_cls(), make_args(options), mode, options)

        command.__doc__ = f"Build the configuration and {_MODE_HELP[mode]}."
        command = rebuild_options(command)
        for option in extra_options:
            command = option(command)
        return click.command(name=mode.value, context_settings={"ignore_unknown_options": True})(command)

    for mode in ActivationMode:
        group.add_command(make_command(mode))

    @click.pass_context
    def repl(ctx, **options):
        """Open a nix repl on the configuration."""
        _repl(ctx, platform, strategy_cls(), make_args(options), options)

    repl = rebuild_options(repl)
    for option in extra_options:
        repl = option(repl)
    group.add_command(click.command(name="repl")(repl))


_MODE_HELP = {
    ActivationMode.SWITCH: "make it the boot default and activate it now",
    ActivationMode.BOOT: "make it the boot default",
    ActivationMode.TEST: "activate it without adding a boot entry",
    ActivationMode.BUILD: "leave the result without activating",
}


# ============================================================
# Platform groups
# ============================================================

@cli.group(name="os")
def os_group():
    """NixOS system configurations."""
    pass


@cli.group(name="darwin")
def darwin_group():
    """nix-darwin system configurations."""
    pass


@cli.group(name="home")
def home_group():
    """Home-Manager user configurations."""
    pass


_register_platform(
    os_group, "os", NixosPlatformStrategy,
    lambda o: NixosArgs(
        hostname=o.get("hostname"),
        bypass_root_check=o.get("bypass_root_check", False),
        specialisation=o.get("specialisation"),
    ),
    extra_options=(
        click.option("-R", "--bypass-root-check", is_flag=True, help="Allow running as root"),
        click.option("-s", "--specialisation", help="Activate this specialisation"),
    ),
)

_register_platform(
    darwin_group, "darwin", DarwinPlatformStrategy,
    lambda o: DarwinArgs(hostname=o.get("hostname")),
)

_register_platform(
    home_group, "home", HomeManagerPlatformStrategy,
    lambda o: HomeArgs(
        configuration=o.get("configuration"),
        hostname=o.get("hostname"),
        backup_extension=o.get("backup_extension"),
        specialisation=o.get("specialisation"),
        no_specialisation=o.get("no_specialisation", False),
    ),
    extra_options=(
        click.option("-c", "--configuration", help="Name of the homeConfigurations entry"),
        click.option("-b", "--backup-extension", help="Back up clobbered files with this extension"),
        click.option("-s", "--specialisation", help="Activate this specialisation"),
        click.option("-S", "--no-specialisation", is_flag=True, help="Ignore the active specialisation"),
    ),
)


# ============================================================
# LINT and FORMAT Commands
# ============================================================

@cli.command()
@click.argument("path", type=click.Path(exists=True), default=".")
@click.option("--fix", is_flag=True, help="Apply fixes instead of only checking")
@click.option("--strict/--no-strict", default=None, help="Fail on any linter problem")
@click.pass_context
def lint(ctx, path: str, fix: bool, strict: Optional[bool]):
    """Run the formatter, statix and deadnix over PATH."""
    try:
        config = load_config(ctx.obj.get("config_path"), project_root=Path(path))
    except NgError as e:
        _handle_failure(e)
        return

    summary = run_lint(
        Path(path),
        config=config,
        fix=fix,
        strict=resolve_strict(strict, config.pre_flight.strict_lint),
        verbosity=ctx.obj.get("verbose", 0),
    )
    print_summary(summary, console)
    if summary.failed:
        sys.exit(1)


@cli.command(name="format")
@click.argument("path", type=click.Path(exists=True), default=".")
@click.option("--check", is_flag=True, help="Only report files that need formatting")
@click.pass_context
def format_cmd(ctx, path: str, check: bool):
    """Format Nix files under PATH."""
    try:
        config = load_config(ctx.obj.get("config_path"), project_root=Path(path))
        files = run_format(Path(path), apply=not check, config=config)
    except NgError as e:
        _handle_failure(e)
        return

    if check:
        if files:
            console.print(f"[yellow]{len(files)} file(s) need formatting:[/yellow]")
            for file in files:
                console.print(f"  {file}")
            sys.exit(1)
        console.print("[green]All files are formatted.[/green]")
    else:
        console.print(f"[green]Formatted {len(files)} file(s).[/green]")


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    cli()
