"""
Tests for configuration loading and the closed schema.
"""

import textwrap
from pathlib import Path

import pytest

from nixng.config import NgConfig, config_from_toml, config_from_yaml, load_config
from nixng.config.loader import find_config_file
from nixng.errors import ConfigError


class TestModels:

    def test_defaults(self):
        config = NgConfig()
        assert config.pre_flight.selected_checks() == ["syntax", "semantic", "format"]
        assert config.pre_flight.strict_lint is None
        assert config.pre_flight.format.resolved_tool() == "nixfmt"
        assert config.pre_flight.external_linters.enabled() == []

    def test_auto_formatter(self):
        config = NgConfig(pre_flight={"format": {"tool": "auto"}})
        assert config.pre_flight.format.resolved_tool() == "nixfmt"
        config = NgConfig(pre_flight={"format": {"tool": "alejandra"}})
        assert config.pre_flight.format.resolved_tool() == "alejandra"

    def test_linter_paths_and_args(self):
        config = NgConfig(pre_flight={"external_linters": {
            "enable": ["statix"],
            "statix_path": "/opt/statix",
            "deadnix_args": ["--no-lambda-arg"],
        }})
        linters = config.pre_flight.external_linters
        assert linters.path_for("statix") == "/opt/statix"
        assert linters.path_for("deadnix") == "deadnix"
        assert linters.args_for("deadnix") == ["--no-lambda-arg"]
        assert linters.args_for("statix") is None

    def test_selected_checks_is_a_copy(self):
        config = NgConfig(pre_flight={"checks": ["syntax"]})
        config.pre_flight.selected_checks().append("format")
        assert config.pre_flight.checks == ["syntax"]


class TestParsing:

    def test_toml(self):
        config = config_from_toml(textwrap.dedent("""\
            [pre_flight]
            checks = ["syntax", "External Linters"]
            strict_lint = true

            [pre_flight.external_linters]
            enable = ["deadnix"]
        """))
        assert config.pre_flight.checks == ["syntax", "External Linters"]
        assert config.pre_flight.strict_lint is True
        assert config.pre_flight.external_linters.enabled() == ["deadnix"]

    def test_yaml(self):
        config = config_from_yaml(textwrap.dedent("""\
            pre_flight:
              strict_format: false
              format:
                tool: nixpkgs-fmt
        """))
        assert config.pre_flight.strict_format is False
        assert config.pre_flight.format.tool == "nixpkgs-fmt"

    def test_empty_yaml_is_default(self):
        assert config_from_yaml("") == NgConfig()

    @pytest.mark.parametrize("text", [
        "unknown_top = 1\n",
        "[pre_flight]\nbogus = true\n",
        "[pre_flight.format]\ncommand = 'x'\n",
    ])
    def test_unknown_keys_are_rejected(self, text):
        with pytest.raises(ConfigError):
            config_from_toml(text)

    def test_unknown_linter_is_rejected(self):
        with pytest.raises(ConfigError, match="Unknown linter"):
            config_from_toml('[pre_flight.external_linters]\nenable = ["nixf-tidy"]\n')

    def test_invalid_toml(self):
        with pytest.raises(ConfigError, match="Invalid TOML"):
            config_from_toml("[pre_flight\n")

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            config_from_yaml("pre_flight: [unclosed\n")

    def test_non_mapping_yaml(self):
        with pytest.raises(ConfigError, match="mapping"):
            config_from_yaml("- a\n- b\n")


class TestLoadConfig:

    def test_missing_file_yields_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("NG_CONFIG", raising=False)
        assert load_config(project_root=tmp_path) == NgConfig()

    def test_finds_toml_first(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("NG_CONFIG", raising=False)
        (tmp_path / "ng.toml").write_text("[pre_flight]\nstrict_lint = true\n")
        (tmp_path / "ng.yaml").write_text("pre_flight:\n  strict_lint: false\n")
        assert find_config_file(tmp_path) == tmp_path / "ng.toml"
        assert load_config(project_root=tmp_path).pre_flight.strict_lint is True

    def test_yaml_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("NG_CONFIG", raising=False)
        (tmp_path / "ng.yml").write_text("pre_flight:\n  checks: [syntax]\n")
        assert load_config(project_root=tmp_path).pre_flight.checks == ["syntax"]

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(tmp_path / "absent.toml")

    def test_env_path(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text("[pre_flight]\nstrict_format = true\n")
        monkeypatch.setenv("NG_CONFIG", str(path))
        assert load_config(project_root=tmp_path / "elsewhere").pre_flight.strict_format is True

    def test_invalid_file_names_source(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("NG_CONFIG", raising=False)
        (tmp_path / "ng.toml").write_text("oops = 1\n")
        with pytest.raises(ConfigError, match="ng.toml"):
            load_config(project_root=tmp_path)
