"""
External linters check: statix and deadnix, opt-in via configuration.
"""

import logging
from typing import Any, List

from ...commands import Command, command_exists
from ...diagnostics import NgDiagnostic, has_errors
from ...reporter import report_ng_diagnostics
from ..linters import default_linter_args, parse_linter_output
from ..models import CheckStatusReport, PreFlightCheck

logger = logging.getLogger(__name__)


class ExternalLintersCheck(PreFlightCheck):

    name = "External Linters"

    def run(self, ctx, strategy, platform_args: Any) -> CheckStatusReport:
        linters_config = ctx.config.pre_flight.external_linters
        enabled = linters_config.enabled()
        if not enabled:
            logger.debug("No external linters enabled")
            return CheckStatusReport.PASSED

        root = ctx.effective_project_root()
        diagnostics: List[NgDiagnostic] = []
        skipped = []

        for linter in enabled:
            program = linters_config.path_for(linter)
            if not command_exists(program):
                logger.warning("Linter '%s' (%s) not found, skipping", linter, program)
                skipped.append(linter)
                continue

            args = linters_config.args_for(linter)
            if args is None:
                args = default_linter_args(linter, root)
            result = Command(program).args(args).cwd(root).run_capture_output()
            found = parse_linter_output(
                linter, result.returncode, result.stdout or "", result.stderr or "", root
            )
            logger.debug("%s reported %d issue(s)", linter, len(found))
            diagnostics.extend(found)

        if not diagnostics:
            return CheckStatusReport.PASSED_WITH_WARNINGS if skipped else CheckStatusReport.PASSED

        report_ng_diagnostics(self.name, diagnostics)
        if has_errors(diagnostics) and ctx.strict_lint():
            return CheckStatusReport.FAILED_CRITICAL
        return CheckStatusReport.PASSED_WITH_WARNINGS
