"""
Tests for the pre-flight checks and the check registry.
"""

import json
from pathlib import Path

import pytest

from conftest import FakeAnalysisService, semantic_error, semantic_warning

from nixng.config import NgConfig
from nixng.diagnostics import NgSeverity
from nixng.errors import CriticalCheckFailure, NgError
from nixng.platforms import MockArgs, MockPlatformStrategy
from nixng.preflight import (
    CheckStatusReport,
    PreFlightCheck,
    PreflightResult,
    get_core_pre_flight_checks,
    lookup_check,
    run_shared_pre_flight_checks,
)
from nixng.preflight.checks import (
    ExternalLintersCheck,
    FormatCheck,
    GitStatusCheck,
    SemanticCheck,
    SyntaxCheck,
)
from nixng.preflight.checks.git import untracked_nix_files
from nixng.preflight.linters import (
    default_linter_args,
    parse_deadnix_output,
    parse_linter_output,
    parse_statix_output,
)
from nixng.util import find_nix_files


def _run(check, ctx):
    return check.run(ctx, MockPlatformStrategy(), MockArgs())


class _StaticCheck(PreFlightCheck):
    def __init__(self, name, status):
        self.name = name
        self.status = status
        self.ran = False

    def run(self, ctx, strategy, platform_args):
        self.ran = True
        return self.status


class _ExplodingCheck(PreFlightCheck):
    name = "Exploding"

    def run(self, ctx, strategy, platform_args):
        raise NgError("tool went away")


class TestFileDiscovery:

    def test_skips_hidden_and_non_nix(self, nix_project: Path):
        files = find_nix_files(nix_project)
        assert files == [nix_project / "flake.nix", nix_project / "modules" / "base.nix"]

    def test_single_file_root(self, nix_project: Path):
        assert find_nix_files(nix_project / "flake.nix") == [nix_project / "flake.nix"]
        assert find_nix_files(nix_project / "README.md") == []


class TestCheckStatusReport:

    def test_ordering(self):
        assert CheckStatusReport.PASSED < CheckStatusReport.PASSED_WITH_WARNINGS
        assert CheckStatusReport.PASSED_WITH_WARNINGS < CheckStatusReport.FAILED_CRITICAL

    def test_overall_is_max(self):
        result = PreflightResult([
            ("a", CheckStatusReport.PASSED),
            ("b", CheckStatusReport.PASSED_WITH_WARNINGS),
        ])
        assert result.overall == CheckStatusReport.PASSED_WITH_WARNINGS
        assert result.passed
        assert result.warnings == ["b"]
        assert PreflightResult().overall == CheckStatusReport.PASSED


class TestSyntaxCheck:

    def test_clean(self, make_ctx):
        service = FakeAnalysisService()
        assert _run(SyntaxCheck(service), make_ctx()) == CheckStatusReport.PASSED
        assert sorted(service.parsed) == ["base.nix", "flake.nix"]

    def test_errors_are_critical_even_when_not_strict(self, make_ctx, capsys):
        service = FakeAnalysisService(syntax={"base.nix": ["unexpected ';'"]})
        ctx = make_ctx(strict_lint=False, strict_format=False)
        assert _run(SyntaxCheck(service), ctx) == CheckStatusReport.FAILED_CRITICAL
        err = capsys.readouterr().err
        assert "Nix Syntax Parse Found Issues:" in err
        assert "unexpected ';'" in err

    def test_no_files(self, make_ctx, tmp_path):
        ctx = make_ctx(project_root=tmp_path)
        assert _run(SyntaxCheck(FakeAnalysisService()), ctx) == CheckStatusReport.PASSED


class TestSemanticCheck:

    def test_clean_run_passes(self, make_ctx):
        assert _run(SemanticCheck(FakeAnalysisService()), make_ctx()) == CheckStatusReport.PASSED

    def test_warnings_only(self, make_ctx):
        service = FakeAnalysisService(semantic={"flake.nix": [semantic_warning("unused")]})
        ctx = make_ctx(strict_lint=True)
        assert _run(SemanticCheck(service), ctx) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_errors_not_strict(self, make_ctx):
        service = FakeAnalysisService(semantic={"base.nix": [semantic_error("undefined")]})
        assert _run(SemanticCheck(service), make_ctx()) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_errors_strict(self, make_ctx):
        service = FakeAnalysisService(semantic={"base.nix": [semantic_error("undefined")]})
        ctx = make_ctx(config=NgConfig(pre_flight={"strict_lint": True}))
        assert _run(SemanticCheck(service), ctx) == CheckStatusReport.FAILED_CRITICAL

    def test_files_with_syntax_errors_are_not_analyzed(self, make_ctx, capsys):
        service = FakeAnalysisService(
            syntax={"base.nix": ["unexpected end of file"]},
            semantic={"base.nix": [semantic_error("never reported")]},
        )
        status = _run(SemanticCheck(service), make_ctx(strict_lint=True))
        assert status == CheckStatusReport.FAILED_CRITICAL
        assert service.analyzed == ["flake.nix"]
        err = capsys.readouterr().err
        assert "unexpected end of file" in err
        assert "never reported" not in err

    def test_analyzer_unavailable(self, make_ctx):
        service = FakeAnalysisService(available=False)
        assert _run(SemanticCheck(service), make_ctx()) == CheckStatusReport.PASSED_WITH_WARNINGS
        assert service.parsed == []


class TestFormatCheck:

    @pytest.mark.parametrize("strict", [True, False, None])
    def test_missing_formatter_never_critical(self, make_ctx, fake_run, strict):
        fake_run.missing("nixfmt")
        ctx = make_ctx(strict_format=strict)
        assert _run(FormatCheck(), ctx) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_all_formatted(self, make_ctx, fake_run):
        assert _run(FormatCheck(), make_ctx()) == CheckStatusReport.PASSED
        assert len([c for c in fake_run.calls_to("nixfmt") if "--check" in c]) == 2

    def test_unformatted_not_strict(self, make_ctx, fake_run, nix_project):
        fake_run.on("nixfmt", "--check", str(nix_project / "flake.nix"), returncode=1)
        assert _run(FormatCheck(), make_ctx()) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_unformatted_strict(self, make_ctx, fake_run, nix_project):
        fake_run.on("nixfmt", "--check", str(nix_project / "flake.nix"), returncode=1)
        ctx = make_ctx(config=NgConfig(pre_flight={"strict_format": True}))
        assert _run(FormatCheck(), ctx) == CheckStatusReport.FAILED_CRITICAL

    def test_configured_tool(self, make_ctx, fake_run):
        ctx = make_ctx(config=NgConfig(pre_flight={"format": {"tool": "alejandra"}}))
        _run(FormatCheck(), ctx)
        assert fake_run.called("alejandra", "--version")
        assert not fake_run.calls_to("nixfmt")


class TestExternalLintersCheck:

    def test_empty_enable_list_runs_nothing(self, make_ctx, fake_run):
        ctx = make_ctx(config=NgConfig(pre_flight={"external_linters": {"enable": []}}))
        assert _run(ExternalLintersCheck(), ctx) == CheckStatusReport.PASSED
        assert fake_run.calls == []

    def test_absent_enable_list_runs_nothing(self, make_ctx, fake_run):
        assert _run(ExternalLintersCheck(), make_ctx()) == CheckStatusReport.PASSED
        assert fake_run.calls == []

    def test_missing_linter_is_skipped(self, make_ctx, fake_run):
        fake_run.missing("statix")
        ctx = make_ctx(config=NgConfig(pre_flight={"external_linters": {"enable": ["statix"]}}))
        assert _run(ExternalLintersCheck(), ctx) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_deadnix_findings_strict(self, make_ctx, fake_run, nix_project):
        fake_run.on("deadnix", "--fail", returncode=1,
                    stdout=f"{nix_project}/flake.nix:1:3: Unused lambda pattern: self\n")
        config = NgConfig(pre_flight={"strict_lint": True,
                                      "external_linters": {"enable": ["deadnix"]}})
        assert _run(ExternalLintersCheck(), make_ctx(config=config)) == CheckStatusReport.FAILED_CRITICAL
        assert fake_run.called("deadnix", "--fail", str(nix_project))

    def test_statix_warnings_not_critical(self, make_ctx, fake_run):
        report = [{"message": "Assignment instead of inherit", "file": "flake.nix",
                   "severity": "Warn", "position": {"start_line": 2, "start_col": 3}}]
        fake_run.on("statix", "check", returncode=1, stdout=json.dumps(report))
        config = NgConfig(pre_flight={"strict_lint": True,
                                      "external_linters": {"enable": ["statix"]}})
        status = _run(ExternalLintersCheck(), make_ctx(config=config))
        assert status == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_custom_path_and_args(self, make_ctx, fake_run):
        config = NgConfig(pre_flight={"external_linters": {
            "enable": ["deadnix"], "deadnix_path": "/opt/deadnix", "deadnix_args": ["-L"],
        }})
        assert _run(ExternalLintersCheck(), make_ctx(config=config)) == CheckStatusReport.PASSED
        assert fake_run.calls[-1] == ["/opt/deadnix", "-L"]


class TestLinterParsing:

    def test_default_args(self, tmp_path):
        assert default_linter_args("statix", tmp_path) == ["check", "-o", "json", str(tmp_path)]
        assert default_linter_args("deadnix", tmp_path) == ["--fail", str(tmp_path)]

    def test_statix_report_form(self, tmp_path):
        data = {"file": "a.nix", "report": [{
            "note": "Useless parens", "severity": "Warn",
            "diagnostics": [{"at": {"from": {"line": 4, "column": 9}}, "message": "Useless parentheses"}],
        }]}
        (diag,) = parse_statix_output(json.dumps(data), tmp_path)
        assert (diag.line, diag.column) == (4, 9)
        assert diag.severity == NgSeverity.WARNING
        assert diag.message == "Useless parentheses"

    def test_statix_empty(self, tmp_path):
        assert parse_statix_output("  ", tmp_path) == []

    def test_deadnix_lines(self):
        diags = parse_deadnix_output("a.nix:3:5: Unused let binding: x\nnoise\n")
        assert [(str(d.file_path), d.line, d.column, d.message) for d in diags] == [
            ("a.nix", 3, 5, "Unused let binding: x"),
        ]
        assert diags[0].severity == NgSeverity.ERROR

    def test_garbage_becomes_synthetic_error(self, tmp_path):
        (diag,) = parse_linter_output("statix", 1, "not json", "panic", tmp_path)
        assert diag.is_error
        assert "statix failed with unparseable output" in diag.message

    @pytest.mark.parametrize("report", [
        ["oops"],
        [{"diagnostics": [{"at": "4:9"}]}],
        [{"diagnostics": [{"at": {"from": [4, 9]}}]}],
    ])
    def test_malformed_statix_report_becomes_synthetic_error(self, tmp_path, report):
        stdout = json.dumps({"file": "a.nix", "report": report})
        (diag,) = parse_linter_output("statix", 1, stdout, "", tmp_path)
        assert diag.is_error
        assert "statix failed with unparseable output" in diag.message

    def test_failure_without_diagnostics(self, tmp_path):
        (diag,) = parse_linter_output("deadnix", 2, "", "cannot read dir", tmp_path)
        assert "cannot read dir" in diag.message

    def test_clean_exit(self, tmp_path):
        assert parse_linter_output("deadnix", 0, "", "", tmp_path) == []


class TestGitStatusCheck:

    def test_outside_work_tree(self, make_ctx, fake_run):
        assert _run(GitStatusCheck(), make_ctx()) == CheckStatusReport.PASSED
        assert fake_run.calls == []

    def test_untracked_files_warn(self, make_ctx, fake_run, nix_project):
        (nix_project / ".git").mkdir()
        fake_run.on("git", "status", stdout="?? modules/new.nix\n M flake.nix\n")
        fake_run.on("git", "check-ignore", returncode=1)
        assert _run(GitStatusCheck(), make_ctx()) == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_clean_tree(self, make_ctx, fake_run, nix_project):
        (nix_project / ".git").mkdir()
        assert _run(GitStatusCheck(), make_ctx()) == CheckStatusReport.PASSED

    def test_porcelain_parsing(self):
        assert untracked_nix_files("?? a.nix\n?? notes.txt\n?? flake.lock\nA  b.nix\n") == [
            "a.nix", "flake.lock",
        ]


class TestRegistry:

    def test_lookup_by_key_and_display_name(self):
        assert lookup_check("syntax") is not None
        assert lookup_check("External Linters") is lookup_check("external_linters")
        assert lookup_check("nix semantic check") is lookup_check("semantic")
        assert lookup_check("nonsense") is None

    def test_default_selection(self):
        checks = get_core_pre_flight_checks(NgConfig(), FakeAnalysisService())
        assert [c.name for c in checks] == ["Nix Syntax Parse", "Nix Semantic Check", "Nix Code Format"]

    def test_unknown_names_are_skipped(self, caplog):
        config = NgConfig(pre_flight={"checks": ["semantic", "does-not-exist"]})
        checks = get_core_pre_flight_checks(config, FakeAnalysisService())
        assert [c.name for c in checks] == ["Nix Semantic Check"]
        assert "does-not-exist" in caplog.text

    def test_configured_order(self):
        config = NgConfig(pre_flight={"checks": ["format", "syntax"]})
        checks = get_core_pre_flight_checks(config, FakeAnalysisService())
        assert [type(c) for c in checks] == [FormatCheck, SyntaxCheck]

    def test_tiers_widen_selection(self):
        config = NgConfig(pre_flight={"checks": ["syntax"]})
        medium = get_core_pre_flight_checks(config, FakeAnalysisService(), medium=True)
        full = get_core_pre_flight_checks(config, FakeAnalysisService(), full=True)
        assert [type(c) for c in medium] == [SyntaxCheck, ExternalLintersCheck]
        assert [type(c) for c in full] == [SyntaxCheck, ExternalLintersCheck, GitStatusCheck]

    def test_tier_does_not_duplicate(self):
        config = NgConfig(pre_flight={"checks": ["External Linters"]})
        checks = get_core_pre_flight_checks(config, FakeAnalysisService(), medium=True)
        assert len(checks) == 1


class TestRunSharedPreFlightChecks:

    def _semantic_failure_checks(self, config):
        service = FakeAnalysisService(semantic={"base.nix": [semantic_error("undefined variable 'x'")]})
        return get_core_pre_flight_checks(config, service)

    def test_strict_config_aborts_with_check_name(self, make_ctx):
        config = NgConfig(pre_flight={"checks": ["semantic"], "strict_lint": True})
        ctx = make_ctx(config=config)
        with pytest.raises(CriticalCheckFailure) as exc:
            run_shared_pre_flight_checks(ctx, MockPlatformStrategy(), MockArgs(),
                                         self._semantic_failure_checks(config))
        assert "Critical pre-flight check 'Nix Semantic Check' failed" in str(exc.value)
        assert exc.value.check_name == "Nix Semantic Check"

    def test_cli_false_overrides_strict_config(self, make_ctx):
        config = NgConfig(pre_flight={"checks": ["semantic"], "strict_lint": True})
        ctx = make_ctx(config=config, strict_lint=False)
        result = run_shared_pre_flight_checks(ctx, MockPlatformStrategy(), MockArgs(),
                                              self._semantic_failure_checks(config))
        assert result.passed
        assert result.overall == CheckStatusReport.PASSED_WITH_WARNINGS

    def test_unknown_name_alongside_valid_one(self, make_ctx):
        config = NgConfig(pre_flight={"checks": ["syntax", "frobnicate"]})
        service = FakeAnalysisService()
        checks = get_core_pre_flight_checks(config, service)
        result = run_shared_pre_flight_checks(make_ctx(config=config), MockPlatformStrategy(),
                                              MockArgs(), checks)
        assert result.results == [("Nix Syntax Parse", CheckStatusReport.PASSED)]
        assert service.parsed

    def test_stops_at_first_critical(self, make_ctx):
        first = _StaticCheck("First", CheckStatusReport.FAILED_CRITICAL)
        second = _StaticCheck("Second", CheckStatusReport.PASSED)
        with pytest.raises(CriticalCheckFailure, match="'First'"):
            run_shared_pre_flight_checks(make_ctx(), MockPlatformStrategy(), MockArgs(),
                                         [first, second])
        assert not second.ran

    def test_overall_is_maximum(self, make_ctx):
        checks = [
            _StaticCheck("A", CheckStatusReport.PASSED),
            _StaticCheck("B", CheckStatusReport.PASSED_WITH_WARNINGS),
            _StaticCheck("C", CheckStatusReport.PASSED),
        ]
        result = run_shared_pre_flight_checks(make_ctx(), MockPlatformStrategy(), MockArgs(), checks)
        assert result.overall == CheckStatusReport.PASSED_WITH_WARNINGS
        assert [name for name, _ in result.results] == ["A", "B", "C"]

    def test_check_error_is_reported(self, make_ctx, capsys):
        with pytest.raises(CriticalCheckFailure, match="Error executing pre-flight check 'Exploding'"):
            run_shared_pre_flight_checks(make_ctx(), MockPlatformStrategy(), MockArgs(),
                                         [_ExplodingCheck()])
        assert "Pre-flight System Error" in capsys.readouterr().err

    def test_no_preflight_runs_nothing(self, make_ctx):
        check = _StaticCheck("A", CheckStatusReport.FAILED_CRITICAL)
        result = run_shared_pre_flight_checks(make_ctx(no_preflight=True), MockPlatformStrategy(),
                                              MockArgs(), [check])
        assert not check.ran
        assert result.results == []
