"""
Pre-flight Checker

Check registry and the runner that executes the configured checks in
order, aborting on the first critical failure.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..analysis import AnalysisService, NixToolAnalysisService
from ..config import NgConfig
from ..errors import CriticalCheckFailure, NgError
from ..progress import spinner
from ..reporter import report_failure
from .checks import (
    ExternalLintersCheck,
    FormatCheck,
    GitStatusCheck,
    SemanticCheck,
    SyntaxCheck,
)
from .models import CheckStatusReport, PreFlightCheck, PreflightResult

logger = logging.getLogger(__name__)

CheckFactory = Callable[[AnalysisService], PreFlightCheck]

# Registry keys; display names are accepted as aliases
CHECK_REGISTRY: Dict[str, CheckFactory] = {
    "syntax": lambda service: SyntaxCheck(service),
    "semantic": lambda service: SemanticCheck(service),
    "format": lambda service: FormatCheck(),
    "external_linters": lambda service: ExternalLintersCheck(),
    "git": lambda service: GitStatusCheck(),
}

_ALIASES = {
    SyntaxCheck.name.lower(): "syntax",
    SemanticCheck.name.lower(): "semantic",
    FormatCheck.name.lower(): "format",
    ExternalLintersCheck.name.lower(): "external_linters",
    "lint": "external_linters",
    GitStatusCheck.name.lower(): "git",
}


def _canonical(name: str) -> str:
    key = name.strip().lower()
    return _ALIASES.get(key, key)


def lookup_check(name: str) -> Optional[CheckFactory]:
    """Find a check factory by registry key or display name (case-insensitive)."""
    return CHECK_REGISTRY.get(_canonical(name))


def get_core_pre_flight_checks(
    config: NgConfig,
    service: Optional[AnalysisService] = None,
    medium: bool = False,
    full: bool = False,
) -> List[PreFlightCheck]:
    """
    Instantiate the configured checks in order.

    Unknown names are logged and skipped. The medium tier appends the
    external linters; the full tier also appends the git status check.

    Args:
        config: Loaded configuration (pre_flight.checks selects the checks)
        service: Analysis service shared by syntax and semantic checks
        medium: Enable the medium check tier
        full: Enable the full check tier
    """
    service = service or NixToolAnalysisService()
    names = config.pre_flight.selected_checks()
    for tier_enabled, extra in ((medium or full, "external_linters"), (full, "git")):
        if tier_enabled and extra not in [_canonical(n) for n in names]:
            names.append(extra)

    checks: List[PreFlightCheck] = []
    for name in names:
        factory = lookup_check(name)
        if factory is None:
            logger.warning("Unknown pre-flight check '%s' in configuration, skipping", name)
            continue
        checks.append(factory(service))
    return checks


def run_shared_pre_flight_checks(
    ctx,
    strategy,
    platform_args: Any,
    checks: List[PreFlightCheck],
) -> PreflightResult:
    """
    Run checks in order.

    Returns:
        PreflightResult with each check's status

    Raises:
        CriticalCheckFailure: If a check fails critically or cannot run
    """
    result = PreflightResult()
    if ctx.common_args.no_preflight:
        logger.info("Pre-flight checks skipped (--no-preflight)")
        return result

    logger.info("Running pre-flight checks for %s", strategy.name)
    for check in checks:
        logger.debug("Executing pre-flight check: %s", check.name)
        try:
            with spinner(f"[Pre-flight] Running {check.name} check"):
                status = check.run(ctx, strategy, platform_args)
        except (NgError, OSError) as e:
            _report_check_error(check, e)
            raise CriticalCheckFailure(
                check.name, f"Error executing pre-flight check '{check.name}'. Aborting."
            ) from e

        result.results.append((check.name, status))
        if status == CheckStatusReport.FAILED_CRITICAL:
            logger.error("%s check failed", check.name)
            raise CriticalCheckFailure(check.name)
        logger.info("%s check %s", check.name, status.label)

    if result.overall == CheckStatusReport.PASSED:
        logger.info("All pre-flight checks passed for %s", strategy.name)
    else:
        logger.warning("Pre-flight checks for %s completed with warnings", strategy.name)
    return result


def _report_check_error(check: PreFlightCheck, error: Exception) -> None:
    report_failure(
        "Pre-flight System Error",
        f"Check '{check.name}' failed to execute",
        str(error),
        ["This indicates an issue with ng itself or its environment."],
    )
