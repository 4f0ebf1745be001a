"""
Pre-flight Check Models

Shared types for pre-flight validation: the status a check reports and
the base class every check implements.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, List, Tuple

if TYPE_CHECKING:
    from ..context import OperationContext
    from ..platforms.base import PlatformRebuildStrategy


class CheckStatusReport(IntEnum):
    """Outcome of a check; ordered so the overall status is the max."""
    PASSED = 0
    PASSED_WITH_WARNINGS = 1
    FAILED_CRITICAL = 2

    @property
    def label(self) -> str:
        return {
            CheckStatusReport.PASSED: "passed",
            CheckStatusReport.PASSED_WITH_WARNINGS: "passed with warnings",
            CheckStatusReport.FAILED_CRITICAL: "failed",
        }[self]


class PreFlightCheck(ABC):
    """
    Base class for pre-flight checks.

    Subclasses set ``name`` (shown to the user and used in abort
    messages) and implement run().
    """

    name: str = "Unnamed Check"

    @abstractmethod
    def run(
        self,
        ctx: "OperationContext",
        strategy: "PlatformRebuildStrategy",
        platform_args: Any,
    ) -> CheckStatusReport:
        """
        Execute the check.

        Args:
            ctx: Operation context for this invocation
            strategy: Platform strategy being rebuilt
            platform_args: Platform-specific arguments

        Returns:
            Status of this check
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


@dataclass
class PreflightResult:
    """Statuses of every check that ran, in order."""
    results: List[Tuple[str, CheckStatusReport]] = field(default_factory=list)

    @property
    def overall(self) -> CheckStatusReport:
        if not self.results:
            return CheckStatusReport.PASSED
        return max(status for _, status in self.results)

    @property
    def passed(self) -> bool:
        return self.overall != CheckStatusReport.FAILED_CRITICAL

    @property
    def warnings(self) -> List[str]:
        return [name for name, status in self.results
                if status == CheckStatusReport.PASSED_WITH_WARNINGS]

    def summary(self) -> str:
        total = len(self.results)
        passed = len([1 for _, s in self.results if s == CheckStatusReport.PASSED])
        return (
            f"{self.overall.label.upper()}: {passed}/{total} checks passed cleanly "
            f"({len(self.warnings)} with warnings)"
        )
