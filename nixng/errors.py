"""
Error Types

Exception hierarchy shared by the rebuild workflow.
"""

from typing import List, Optional


class NgError(Exception):
    """Base class for all errors raised by ng."""
    pass


class ConfigError(NgError):
    """Configuration file could not be read or failed validation."""
    pass


class ConfigurationError(NgError):
    """The requested target could not be resolved (hostname, attribute path, installable)."""
    pass


class CommandExecutionError(NgError):
    """An external command could not be run or exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def output(self) -> str:
        """Combined captured output, stderr first."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)


class CommandSpawnError(CommandExecutionError):
    """The process could not be started at all."""
    pass


class CommandFailedError(CommandExecutionError):
    """The process ran with captured output and exited non-zero."""
    pass


class InheritedCommandFailedError(CommandExecutionError):
    """The process ran with inherited stdio and exited non-zero."""
    pass


class DiagnosticToolError(NgError):
    """Output of an analysis tool or linter could not be understood."""

    def __init__(self, tool: str, message: str, raw_output: str = ""):
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.raw_output = raw_output


class UserRejected(NgError):
    """The user answered no at the confirmation prompt."""
    pass


class CriticalCheckFailure(NgError):
    """A pre-flight check failed under strict policy."""

    def __init__(self, check_name: str, message: Optional[str] = None):
        super().__init__(message or f"Critical pre-flight check '{check_name}' failed. Aborting.")
        self.check_name = check_name


class StageFailure(NgError):
    """
    A critical workflow stage failed.

    The underlying exception is kept as ``__cause__``.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        details: Optional[str] = None,
        recommendations: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.details = details
        self.recommendations = recommendations or []
