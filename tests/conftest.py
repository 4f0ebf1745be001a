"""
Shared test fixtures and configuration.

No test spawns a real process: ``fake_run`` replaces ``subprocess.run``
for everything that goes through ``nixng.commands``.
"""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from nixng.analysis import AnalysisService
from nixng.config import NgConfig
from nixng.context import CommonRebuildArgs, OperationContext, UpdateArgs
from nixng.diagnostics import NgDiagnostic, NgSeverity
from nixng.errors import CommandFailedError
from nixng.installable import FlakeInstallable
from nixng.nix_interface import NixInterface


class FakeRunner:
    """
    Stand-in for subprocess.run that records argv and answers by prefix.

    Later rules win over earlier ones; unmatched calls succeed with no output.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.kwargs: List[dict] = []
        self._rules: list = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "",
           raises: Optional[Exception] = None) -> "FakeRunner":
        self._rules.insert(0, (tuple(prefix), returncode, stdout, stderr, raises))
        return self

    def missing(self, program: str) -> "FakeRunner":
        return self.on(program, raises=FileNotFoundError(2, "No such file or directory", program))

    def __call__(self, argv, **kwargs):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        self.kwargs.append(kwargs)
        for prefix, returncode, stdout, stderr, raises in self._rules:
            if tuple(argv[:len(prefix)]) == prefix:
                if raises is not None:
                    raise raises
                return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[:len(prefix)]) == prefix for call in self.calls)

    def calls_to(self, program: str) -> List[List[str]]:
        return [call for call in self.calls if call and call[0] == program]


class RecordingNixInterface(NixInterface):
    """NixInterface that records calls instead of running nix."""

    def __init__(self, dry_run: bool = False, build_result: Optional[Path] = None,
                 fail_build: bool = False, fail_diff: bool = False, fail_gc: bool = False):
        super().__init__(verbosity=0, dry_run=dry_run)
        self.build_result = build_result
        self.fail_build = fail_build
        self.fail_diff = fail_diff
        self.fail_gc = fail_gc
        self.calls: List[tuple] = []

    @property
    def call_names(self) -> List[str]:
        return [name for name, *_ in self.calls]

    def build_configuration(self, installable, extra_args=(), use_pretty_printer=False, out_link=None):
        self.calls.append(("build", installable, list(extra_args), use_pretty_printer, out_link))
        if self.fail_build:
            raise CommandFailedError(
                "Command 'nix build' failed with exit code 1",
                command="nix build",
                returncode=1,
                stderr="error: attribute 'foo' missing",
            )
        if self.dry_run:
            return super().build_configuration(installable, extra_args, use_pretty_printer, out_link)
        return self.build_result or Path(out_link)

    def run_diff(self, current, new):
        self.calls.append(("diff", current, new))
        if self.fail_diff:
            raise CommandFailedError("nvd failed", command="nvd diff", returncode=1)

    def run_gc(self, force_dry_run=False):
        self.calls.append(("gc", force_dry_run))
        if self.fail_gc:
            raise CommandFailedError("gc failed", command="nix store gc", returncode=1)

    def update_flake_inputs(self, reference, inputs=()):
        self.calls.append(("update", reference, list(inputs)))


class FakeAnalysisService(AnalysisService):
    """In-memory analysis keyed by file name."""

    name = "fake"

    def __init__(self, syntax: Optional[Dict[str, List[str]]] = None,
                 semantic: Optional[Dict[str, List[tuple]]] = None,
                 available: bool = True):
        self.syntax = syntax or {}
        self.semantic_results = semantic or {}
        self.available = available
        self.parsed: List[str] = []
        self.analyzed: List[str] = []

    def parse(self, path: Path) -> List[NgDiagnostic]:
        self.parsed.append(path.name)
        return [
            NgDiagnostic(file_path=path, message=msg, line=1, column=1, source="fake")
            for msg in self.syntax.get(path.name, [])
        ]

    def semantic(self, path: Path) -> List[NgDiagnostic]:
        self.analyzed.append(path.name)
        return [
            NgDiagnostic(file_path=path, message=msg, severity=severity, line=line, column=1,
                         source="fake")
            for msg, severity, line in self.semantic_results.get(path.name, [])
        ]

    def semantic_available(self) -> bool:
        return self.available


def semantic_error(message: str, line: int = 1) -> tuple:
    return (message, NgSeverity.ERROR, line)


def semantic_warning(message: str, line: int = 1) -> tuple:
    return (message, NgSeverity.WARNING, line)


@pytest.fixture
def fake_run(monkeypatch) -> FakeRunner:
    """Replace subprocess.run as seen by nixng.commands."""
    runner = FakeRunner()
    monkeypatch.setattr("nixng.commands.subprocess.run", runner)
    return runner


@pytest.fixture
def nix_project(tmp_path: Path) -> Path:
    """A small flake tree with a nested module and a hidden directory."""
    root = tmp_path / "project"
    (root / "modules").mkdir(parents=True)
    (root / ".direnv").mkdir()
    (root / "flake.nix").write_text("{ outputs = _: { }; }\n")
    (root / "modules" / "base.nix").write_text("{ ... }: { }\n")
    (root / ".direnv" / "cache.nix").write_text("{ }\n")
    (root / "README.md").write_text("not nix\n")
    return root


@pytest.fixture
def make_ctx(nix_project: Path):
    """Factory for an OperationContext rooted at the test project."""

    def factory(
        config: Optional[NgConfig] = None,
        nix_interface: Optional[NixInterface] = None,
        update_args: Optional[UpdateArgs] = None,
        project_root: Optional[Path] = None,
        extra_args: Sequence[str] = (),
        **common,
    ) -> OperationContext:
        common.setdefault("installable", FlakeInstallable(".", ("mockConfigurations", "test")))
        common.setdefault("no_nom", True)
        args = CommonRebuildArgs(extra_args=tuple(extra_args), **common)
        return OperationContext(
            common_args=args,
            nix_interface=nix_interface or RecordingNixInterface(dry_run=args.dry),
            config=config or NgConfig(),
            update_args=update_args or UpdateArgs(),
            project_root=project_root or nix_project,
        )

    return factory
