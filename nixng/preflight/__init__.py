"""
Pre-flight Check Module

Validates Nix sources (syntax, semantics, formatting, external linters)
before a rebuild is attempted.
"""

from .models import CheckStatusReport, PreFlightCheck, PreflightResult
from .checker import (
    CHECK_REGISTRY,
    get_core_pre_flight_checks,
    lookup_check,
    run_shared_pre_flight_checks,
)

__all__ = [
    "CheckStatusReport",
    "PreFlightCheck",
    "PreflightResult",
    "CHECK_REGISTRY",
    "get_core_pre_flight_checks",
    "lookup_check",
    "run_shared_pre_flight_checks",
]
