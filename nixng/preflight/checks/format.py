"""
Format check: every .nix file must already be formatted.

A missing formatter only warns; unformatted files abort under strict format.
"""

import logging
from pathlib import Path
from typing import Any, List

from ...commands import Command, command_exists
from ...util import find_nix_files
from ..models import CheckStatusReport, PreFlightCheck

logger = logging.getLogger(__name__)


class FormatCheck(PreFlightCheck):

    name = "Nix Code Format"

    def run(self, ctx, strategy, platform_args: Any) -> CheckStatusReport:
        tool = ctx.config.pre_flight.format.resolved_tool()
        if not command_exists(tool):
            logger.warning("Formatter '%s' not found, skipping format check", tool)
            return CheckStatusReport.PASSED_WITH_WARNINGS

        files = find_nix_files(ctx.effective_project_root())
        if not files:
            return CheckStatusReport.PASSED

        unformatted = unformatted_files(tool, files)
        if not unformatted:
            logger.debug("All %d files are formatted", len(files))
            return CheckStatusReport.PASSED

        logger.warning("%d file(s) need formatting with %s:", len(unformatted), tool)
        for path in unformatted:
            logger.warning("  %s", path)

        if ctx.strict_format():
            return CheckStatusReport.FAILED_CRITICAL
        return CheckStatusReport.PASSED_WITH_WARNINGS


def unformatted_files(tool: str, files: List[Path]) -> List[Path]:
    """Files for which ``<tool> --check`` exits non-zero."""
    result = []
    for path in files:
        completed = Command(tool).args(["--check", str(path)]).run_capture_output()
        if completed.returncode != 0:
            result.append(path)
    return result
