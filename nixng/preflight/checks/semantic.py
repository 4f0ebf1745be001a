"""
Semantic check: name resolution and other analyzer diagnostics.

Files with syntax errors are not analyzed further, but their syntax
diagnostics are still reported. Errors abort only under strict lint.
"""

import logging
from typing import Any, List, Optional

from ...analysis import AnalysisService, NixToolAnalysisService, parse_files_parallel
from ...diagnostics import NgDiagnostic, has_errors
from ...reporter import report_ng_diagnostics
from ...util import find_nix_files
from ..models import CheckStatusReport, PreFlightCheck

logger = logging.getLogger(__name__)


class SemanticCheck(PreFlightCheck):

    name = "Nix Semantic Check"

    def __init__(self, service: Optional[AnalysisService] = None):
        self.service = service or NixToolAnalysisService()

    def run(self, ctx, strategy, platform_args: Any) -> CheckStatusReport:
        files = find_nix_files(ctx.effective_project_root())
        if not files:
            logger.info("No .nix files found to check")
            return CheckStatusReport.PASSED

        if not self.service.semantic_available():
            logger.warning("Semantic analyzer not available, skipping %s", self.name)
            return CheckStatusReport.PASSED_WITH_WARNINGS

        diagnostics: List[NgDiagnostic] = []
        for path, syntax_diags in parse_files_parallel(self.service, files).items():
            if syntax_diags:
                logger.debug("Skipping semantic analysis for %s due to syntax errors", path)
                diagnostics.extend(syntax_diags)
                continue
            diagnostics.extend(self.service.semantic(path))

        if not diagnostics:
            return CheckStatusReport.PASSED

        report_ng_diagnostics(self.name, diagnostics)

        if has_errors(diagnostics):
            if ctx.strict_lint():
                return CheckStatusReport.FAILED_CRITICAL
            logger.warning("Semantic errors found, continuing because strict lint is off")
        return CheckStatusReport.PASSED_WITH_WARNINGS
