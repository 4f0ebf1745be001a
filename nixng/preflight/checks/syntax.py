"""
Syntax check: every .nix file under the project root must parse.

Syntax errors are always critical, whatever the strictness settings.
"""

import logging
from typing import Any, List, Optional

from ...analysis import AnalysisService, NixToolAnalysisService, parse_files_parallel
from ...diagnostics import NgDiagnostic
from ...reporter import report_ng_diagnostics
from ...util import find_nix_files
from ..models import CheckStatusReport, PreFlightCheck

logger = logging.getLogger(__name__)


class SyntaxCheck(PreFlightCheck):
    """Parses all Nix files in parallel."""

    name = "Nix Syntax Parse"

    def __init__(self, service: Optional[AnalysisService] = None):
        self.service = service or NixToolAnalysisService()

    def run(self, ctx, strategy, platform_args: Any) -> CheckStatusReport:
        files = find_nix_files(ctx.effective_project_root())
        if not files:
            logger.info("No .nix files found to check")
            return CheckStatusReport.PASSED

        per_file = parse_files_parallel(self.service, files)
        diagnostics: List[NgDiagnostic] = [d for diags in per_file.values() for d in diags]

        if not diagnostics:
            logger.debug("All %d files parsed cleanly", len(files))
            return CheckStatusReport.PASSED

        report_ng_diagnostics(self.name, diagnostics)
        return CheckStatusReport.FAILED_CRITICAL
