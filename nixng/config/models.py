"""
Pydantic models for the ng configuration file.

The schema is closed: unknown keys at any level are rejected.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

KNOWN_LINTERS = ("statix", "deadnix")
DEFAULT_CHECKS = ["syntax", "semantic", "format"]
AUTO_FORMAT_TOOL = "auto"
DEFAULT_FORMAT_TOOL = "nixfmt"


class FormatConfig(BaseModel):
    """Formatter selection for the format check."""

    model_config = ConfigDict(extra="forbid")

    tool: Optional[str] = Field(None, description="Formatter binary, or 'auto'")

    def resolved_tool(self) -> str:
        """Binary name to run; 'auto' and unset both mean the default formatter."""
        if not self.tool or self.tool == AUTO_FORMAT_TOOL:
            return DEFAULT_FORMAT_TOOL
        return self.tool


class ExternalLintersConfig(BaseModel):
    """Opt-in external linters and their invocation overrides."""

    model_config = ConfigDict(extra="forbid")

    enable: Optional[List[str]] = Field(None, description="Linters to run, e.g. ['statix', 'deadnix']")
    statix_path: Optional[str] = None
    deadnix_path: Optional[str] = None
    statix_args: Optional[List[str]] = None
    deadnix_args: Optional[List[str]] = None

    @field_validator("enable")
    @classmethod
    def validate_enable(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        unknown = [name for name in v if name not in KNOWN_LINTERS]
        if unknown:
            raise ValueError(
                f"Unknown linter(s) {unknown}; known linters: {', '.join(KNOWN_LINTERS)}"
            )
        return v

    def enabled(self) -> List[str]:
        return list(self.enable or [])

    def path_for(self, linter: str) -> str:
        """Binary for a linter, defaulting to its own name."""
        return getattr(self, f"{linter}_path", None) or linter

    def args_for(self, linter: str) -> Optional[List[str]]:
        return getattr(self, f"{linter}_args", None)


class PreFlightConfig(BaseModel):
    """Pre-flight check selection and strictness policy."""

    model_config = ConfigDict(extra="forbid")

    checks: Optional[List[str]] = Field(None, description="Ordered check names to run")
    strict_lint: Optional[bool] = None
    strict_format: Optional[bool] = None
    format: FormatConfig = Field(default_factory=FormatConfig)
    external_linters: ExternalLintersConfig = Field(default_factory=ExternalLintersConfig)

    def selected_checks(self) -> List[str]:
        if self.checks is None:
            return list(DEFAULT_CHECKS)
        return list(self.checks)


class NgConfig(BaseModel):
    """Top-level configuration document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    pre_flight: PreFlightConfig = Field(default_factory=PreFlightConfig)
