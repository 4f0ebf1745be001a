"""
Workflow Executor

Runs the fixed rebuild pipeline for a platform strategy:

    pre-hook -> pre-flight -> update -> toplevel -> out path -> build
    -> diff -> confirm -> activate -> clean -> post-hook

Critical stages abort with a StageFailure carrying the stage name; the
diff and cleanup stages only warn.
"""

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Callable, List, Optional

from rich.prompt import Confirm

from ..errors import (
    CommandExecutionError,
    ConfigurationError,
    CriticalCheckFailure,
    NgError,
    StageFailure,
    UserRejected,
)
from ..installable import FlakeInstallable
from ..nix_interface import DRY_RUN_PLACEHOLDER_PATH
from ..platforms.base import ActivationMode, PlatformRebuildStrategy
from ..preflight import PreFlightCheck, get_core_pre_flight_checks, run_shared_pre_flight_checks
from ..progress import spinner
from ..reporter import collect_build_failure_details
from ..util import manage_out_path
from .state import StageLog, StageStatus

logger = logging.getLogger(__name__)

# Stage names, also used in failure reports
STAGE_PRE_HOOK = "Pre-rebuild Hook"
STAGE_PREFLIGHT = "Pre-flight Checks"
STAGE_UPDATE = "Flake Update"
STAGE_TOPLEVEL = "Toplevel Resolution"
STAGE_OUT_PATH = "Output Path"
STAGE_BUILD = "Build"
STAGE_DIFF = "Diff"
STAGE_CONFIRM = "Confirmation"
STAGE_ACTIVATE = "Activation"
STAGE_CLEAN = "Cleanup"
STAGE_POST_HOOK = "Post-rebuild Hook"


def ask_confirmation(prompt: str) -> bool:
    return Confirm.ask(prompt, default=False)


class WorkflowExecutor:
    """
    Sequences one rebuild for a platform.

    Args:
        ctx: Operation context
        strategy: Platform strategy to drive
        platform_args: The strategy's argument object
        checks: Pre-flight checks to run; defaults to the configured ones
        confirm: Callable asked before activation when --ask is set
    """

    def __init__(
        self,
        ctx,
        strategy: PlatformRebuildStrategy,
        platform_args: Any,
        checks: Optional[List[PreFlightCheck]] = None,
        confirm: Callable[[str], bool] = ask_confirmation,
    ):
        self.ctx = ctx
        self.strategy = strategy
        self.platform_args = platform_args
        self.checks = checks
        self.confirm = confirm
        self.stages = StageLog()

    @property
    def name(self) -> str:
        return self.strategy.name

    def run(self, mode: ActivationMode) -> Path:
        """
        Execute the pipeline.

        Returns:
            Path of the build result (a placeholder in simulated builds)

        Raises:
            StageFailure: A critical stage failed
            UserRejected: The user declined activation
        """
        ctx = self.ctx
        dry = ctx.dry_run
        build_only = mode == ActivationMode.BUILD
        logger.info("Starting %s rebuild workflow (%s)", self.name, mode.value)

        self._critical(STAGE_PRE_HOOK, f"{self.name} pre-rebuild hook failed",
                       self.strategy.pre_rebuild_hook, ctx, self.platform_args)

        self._run_preflight()

        if ctx.update_args.requested:
            self._critical(STAGE_UPDATE, "Failed to update flake inputs", self._update_inputs)
        else:
            self.stages.record(STAGE_UPDATE, StageStatus.SKIPPED)

        toplevel = self._critical(
            STAGE_TOPLEVEL,
            f"Failed to determine toplevel installable for {self.name}",
            self.strategy.get_toplevel_installable, ctx, self.platform_args,
        )
        logger.debug("Resolved toplevel installable for %s: %s", self.name, toplevel)

        with ExitStack() as stack:
            try:
                out_path = stack.enter_context(manage_out_path(ctx.common_args.out_link))
            except OSError as e:
                self.stages.record(STAGE_OUT_PATH, StageStatus.FAILED, str(e))
                raise StageFailure(STAGE_OUT_PATH, f"Failed to prepare output path: {e}") from e
            self.stages.record(STAGE_OUT_PATH, StageStatus.COMPLETED, str(out_path))

            built_path = self._build(toplevel, out_path, simulate=dry and build_only)

            if build_only or dry:
                for stage in (STAGE_DIFF, STAGE_CONFIRM, STAGE_ACTIVATE, STAGE_CLEAN):
                    self.stages.record(stage, StageStatus.SKIPPED,
                                       "build-only" if build_only else "dry-run")
                if build_only:
                    logger.info("Build-only mode: result at %s", built_path)
                else:
                    logger.info("Dry-run: skipping diff, confirmation and activation for %s", self.name)
            else:
                self._show_diff(built_path)
                self._confirm()
                self._critical(
                    STAGE_ACTIVATE,
                    f"Failed to activate {self.name} configuration",
                    self.strategy.activate_configuration, ctx, self.platform_args, built_path, mode,
                )
                self._clean()

        self._critical(STAGE_POST_HOOK, f"{self.name} post-rebuild hook failed",
                       self.strategy.post_rebuild_hook, ctx, self.platform_args)

        logger.info("%s rebuild workflow (%s) finished successfully", self.name, mode.value)
        logger.debug("Stages: %s", self.stages.summary())
        return built_path

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _critical(self, stage: str, message: str, func: Callable, *args):
        """Run a critical stage, wrapping any ng error with stage context."""
        try:
            result = func(*args)
        except StageFailure:
            self.stages.record(stage, StageStatus.FAILED)
            raise
        except NgError as e:
            self.stages.record(stage, StageStatus.FAILED, str(e))
            details = e.output if isinstance(e, CommandExecutionError) else None
            raise StageFailure(stage, f"{message}: {e}", details=details or None) from e
        self.stages.record(stage, StageStatus.COMPLETED)
        return result

    def _run_preflight(self) -> None:
        if self.ctx.common_args.no_preflight:
            logger.info("Pre-flight checks skipped due to --no-preflight")
            self.stages.record(STAGE_PREFLIGHT, StageStatus.SKIPPED, "--no-preflight")
            return

        checks = self.checks
        if checks is None:
            common = self.ctx.common_args
            checks = get_core_pre_flight_checks(
                self.ctx.config, medium=common.medium, full=common.full
            )
        try:
            result = run_shared_pre_flight_checks(self.ctx, self.strategy, self.platform_args, checks)
        except CriticalCheckFailure as e:
            self.stages.record(STAGE_PREFLIGHT, StageStatus.FAILED, str(e))
            raise StageFailure(STAGE_PREFLIGHT, str(e)) from e

        status = StageStatus.COMPLETED if not result.warnings else StageStatus.WARNED
        self.stages.record(STAGE_PREFLIGHT, status, result.summary())

    def _update_inputs(self) -> None:
        installable = self.ctx.common_args.installable
        if not isinstance(installable, FlakeInstallable):
            raise ConfigurationError("Updating inputs requires a flake installable")
        with spinner("Updating flake inputs..."):
            self.ctx.nix_interface.update_flake_inputs(
                installable.reference, list(self.ctx.update_args.inputs)
            )

    def _build(self, toplevel, out_path: Path, simulate: bool) -> Path:
        if simulate:
            logger.info("Dry-run build-only mode: simulating build of %s (output would be at %s)",
                        toplevel, out_path)
            self.stages.record(STAGE_BUILD, StageStatus.SKIPPED, "simulated")
            return DRY_RUN_PLACEHOLDER_PATH

        common = self.ctx.common_args
        try:
            built = self.ctx.nix_interface.build_configuration(
                toplevel,
                extra_args=list(common.extra_args),
                use_pretty_printer=common.use_nom,
                out_link=out_path,
            )
        except CommandExecutionError as e:
            self.stages.record(STAGE_BUILD, StageStatus.FAILED, str(e))
            details = collect_build_failure_details(e, self.ctx.verbosity)
            raise StageFailure(STAGE_BUILD, f"Failed to build {self.name} configuration: {e}",
                               details=details) from e
        self.stages.record(STAGE_BUILD, StageStatus.COMPLETED, str(built))
        return built

    def _show_diff(self, built_path: Path) -> None:
        try:
            current = self.strategy.get_current_profile_path(self.ctx, self.platform_args)
            if current is None:
                self.stages.record(STAGE_DIFF, StageStatus.SKIPPED, "no current profile")
                return
            if not Path(current).exists():
                logger.info("Current profile %s does not exist, skipping diff", current)
                self.stages.record(STAGE_DIFF, StageStatus.SKIPPED, f"{current} missing")
                return
            self.ctx.nix_interface.run_diff(Path(current), built_path)
        except (NgError, OSError) as e:
            logger.warning("Failed to show configuration diff: %s. Continuing without a diff.", e)
            self.stages.record(STAGE_DIFF, StageStatus.WARNED, str(e))
            return
        self.stages.record(STAGE_DIFF, StageStatus.COMPLETED)

    def _confirm(self) -> None:
        if not self.ctx.common_args.ask:
            self.stages.record(STAGE_CONFIRM, StageStatus.SKIPPED, "not requested")
            return
        if not self.confirm(f"Apply the new {self.name} configuration?"):
            self.stages.record(STAGE_CONFIRM, StageStatus.FAILED, "rejected")
            raise UserRejected(f"User rejected the new configuration for {self.name}.")
        logger.info("User confirmed action for %s", self.name)
        self.stages.record(STAGE_CONFIRM, StageStatus.COMPLETED)

    def _clean(self) -> None:
        if not self.ctx.common_args.clean:
            self.stages.record(STAGE_CLEAN, StageStatus.SKIPPED, "not requested")
            return
        try:
            with spinner("Performing post-rebuild cleanup..."):
                self.ctx.nix_interface.run_gc(self.ctx.dry_run)
        except CommandExecutionError as e:
            logger.warning("Manual cleanup step failed (non-critical): %s", e)
            self.stages.record(STAGE_CLEAN, StageStatus.WARNED, str(e))
            return
        self.stages.record(STAGE_CLEAN, StageStatus.COMPLETED)


def execute_rebuild_workflow(ctx, strategy: PlatformRebuildStrategy, platform_args: Any,
                             mode: ActivationMode, **kwargs) -> Path:
    """Convenience wrapper around WorkflowExecutor.run()."""
    return WorkflowExecutor(ctx, strategy, platform_args, **kwargs).run(mode)
