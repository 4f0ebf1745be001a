"""
Command Builder

Fluent construction and execution of external processes. Every process
ng spawns goes through this module, in one of three modes: inherited
stdio (``run``), captured output (``run_capture`` / ``run_capture_output``)
or dry-run simulation.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .errors import (
    CommandExecutionError,
    CommandFailedError,
    CommandSpawnError,
    InheritedCommandFailedError,
)

logger = logging.getLogger(__name__)

MAX_VERBOSITY_FLAGS = 7
ELEVATION_PROGRAM = "sudo"

PathLike = Union[str, Path]


class Command:
    """
    Builder for a single external command.

    Example:
        Command("nix").args(["build", ".#foo"]).dry(True).run()
    """

    def __init__(self, program: PathLike):
        self.program = str(program)
        self._args: List[str] = []
        self._dry = False
        self._message: Optional[str] = None
        self._elevate = False
        self._cwd: Optional[Path] = None
        self._env: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Builder methods
    # ------------------------------------------------------------------

    def arg(self, value: PathLike) -> "Command":
        self._args.append(str(value))
        return self

    def args(self, values: Sequence[PathLike]) -> "Command":
        self._args.extend(str(v) for v in values)
        return self

    def dry(self, dry: bool) -> "Command":
        self._dry = dry
        return self

    def message(self, message: str) -> "Command":
        """Set a human-readable description logged before running."""
        self._message = message
        return self

    def elevate(self, elevate: bool) -> "Command":
        """Run the command through sudo."""
        self._elevate = elevate
        return self

    def cwd(self, path: PathLike) -> "Command":
        self._cwd = Path(path)
        return self

    def env(self, key: str, value: str) -> "Command":
        self._env[key] = value
        return self

    def add_verbosity_flags(self, count: int) -> "Command":
        """Append one ``-v`` per verbosity level, capped at seven."""
        for _ in range(min(max(count, 0), MAX_VERBOSITY_FLAGS)):
            self._args.append("-v")
        return self

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_dry(self) -> bool:
        return self._dry

    def argv(self) -> List[str]:
        """Full argument vector, including the elevation wrapper."""
        argv = [self.program] + self._args
        if self._elevate:
            argv = [ELEVATION_PROGRAM] + argv
        return argv

    def to_command_string(self) -> str:
        return " ".join(self.argv())

    def __repr__(self) -> str:
        return f"Command({self.to_command_string()!r})"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Run with inherited stdin/stdout/stderr.

        Raises:
            CommandSpawnError: If the process could not be started
            InheritedCommandFailedError: If it exited non-zero
        """
        command_str = self.to_command_string()
        self._log_message()

        if self._dry:
            logger.info("Dry-run: %s", command_str)
            return

        logger.debug("Executing: %s", command_str)
        try:
            result = subprocess.run(self.argv(), cwd=self._cwd, env=self._process_env())
        except OSError as e:
            raise CommandSpawnError(
                f"Failed to execute '{command_str}': {e}", command=command_str
            ) from e

        if result.returncode != 0:
            raise InheritedCommandFailedError(
                f"Command '{command_str}' failed with exit code {result.returncode}",
                command=command_str,
                returncode=result.returncode,
            )

    def run_capture(self) -> Optional[str]:
        """
        Run and return captured stdout.

        Returns:
            Stdout as text, or None in dry-run mode
        """
        if self._dry:
            self._log_message()
            logger.info("Dry-run (capture): %s", self.to_command_string())
            return None

        return self._run_captured().stdout

    def run_capture_output(self) -> subprocess.CompletedProcess:
        """
        Run and return the completed process without checking the exit code.

        Dry-run returns a synthetic successful result with empty output.

        Raises:
            CommandExecutionError: If elevation was requested
            CommandSpawnError: If the process could not be started
        """
        command_str = self.to_command_string()
        if self._elevate:
            raise CommandExecutionError(
                f"Elevation is not supported for captured output: {command_str}",
                command=command_str,
            )

        self._log_message()
        if self._dry:
            logger.info("Dry-run (capture output): %s", command_str)
            return subprocess.CompletedProcess(self.argv(), 0, stdout="", stderr="")

        return self._spawn_captured()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_captured(self) -> subprocess.CompletedProcess:
        self._log_message()
        result = self._spawn_captured()
        if result.returncode != 0:
            command_str = self.to_command_string()
            raise CommandFailedError(
                f"Command '{command_str}' failed with exit code {result.returncode}",
                command=command_str,
                returncode=result.returncode,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
            )
        return result

    def _spawn_captured(self) -> subprocess.CompletedProcess:
        command_str = self.to_command_string()
        logger.debug("Executing (captured): %s", command_str)
        try:
            return subprocess.run(
                self.argv(),
                cwd=self._cwd,
                env=self._process_env(),
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise CommandSpawnError(
                f"Failed to execute '{command_str}': {e}", command=command_str
            ) from e

    def _process_env(self) -> Optional[Dict[str, str]]:
        if not self._env:
            return None
        env = dict(os.environ)
        env.update(self._env)
        return env

    def _log_message(self) -> None:
        if self._message:
            logger.info(self._message)


def command_exists(program: str) -> bool:
    """
    Check whether a program can be executed.

    Probes with ``--version`` first and ``--help`` second.
    """
    for flag in ("--version", "--help"):
        try:
            result = subprocess.run(
                [program, flag], capture_output=True, text=True, errors="replace"
            )
        except OSError:
            continue
        if result.returncode == 0:
            return True
    logger.debug("Command '%s' not found or not runnable", program)
    return False


def run_piped(first: Command, second: Command) -> None:
    """
    Run ``first | second`` with the final stage attached to the terminal.

    Raises:
        CommandSpawnError: If either process could not be started
        CommandFailedError: If either process exited non-zero
    """
    pipeline_str = f"{first.to_command_string()} | {second.to_command_string()}"
    if first.is_dry or second.is_dry:
        logger.info("Dry-run: %s", pipeline_str)
        return

    logger.debug("Executing pipeline: %s", pipeline_str)
    try:
        producer = subprocess.Popen(first.argv(), stdout=subprocess.PIPE)
    except OSError as e:
        raise CommandSpawnError(f"Failed to execute '{first.to_command_string()}': {e}",
                                command=pipeline_str) from e
    try:
        consumer = subprocess.Popen(second.argv(), stdin=producer.stdout)
    except OSError as e:
        producer.kill()
        producer.wait()
        raise CommandSpawnError(f"Failed to execute '{second.to_command_string()}': {e}",
                                command=pipeline_str) from e

    # Let the producer receive SIGPIPE if the consumer exits first
    if producer.stdout is not None:
        producer.stdout.close()
    consumer_code = consumer.wait()
    producer_code = producer.wait()

    if producer_code != 0 or consumer_code != 0:
        raise CommandFailedError(
            f"Pipeline '{pipeline_str}' failed (exit codes {producer_code}, {consumer_code})",
            command=pipeline_str,
            returncode=producer_code or consumer_code,
        )

