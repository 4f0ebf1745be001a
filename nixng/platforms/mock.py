"""
Mock Strategy

Records every call and performs no work. Used by the test suite and by
callers that need a stand-in platform.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..installable import FlakeInstallable, Installable
from .base import ActivationMode, PlatformRebuildStrategy


@dataclass
class MockArgs:
    """Knobs for the mock: what to return and which hooks should fail."""
    installable: Installable = field(
        default_factory=lambda: FlakeInstallable(".", ("mockConfigurations", "test"))
    )
    current_profile: Optional[Path] = None
    fail_in: Dict[str, Exception] = field(default_factory=dict)


class MockPlatformStrategy(PlatformRebuildStrategy):

    name = "Mock"
    args_type = MockArgs

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []

    def _record(self, method: str, platform_args: MockArgs, detail: Any = None) -> None:
        self.calls.append((method, detail))
        error = platform_args.fail_in.get(method)
        if error is not None:
            raise error

    @property
    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def pre_rebuild_hook(self, ctx, platform_args: MockArgs) -> None:
        self._record("pre_rebuild_hook", platform_args)

    def get_toplevel_installable(self, ctx, platform_args: MockArgs) -> Installable:
        self._record("get_toplevel_installable", platform_args)
        return platform_args.installable

    def get_current_profile_path(self, ctx, platform_args: MockArgs) -> Optional[Path]:
        self._record("get_current_profile_path", platform_args)
        return platform_args.current_profile

    def activate_configuration(self, ctx, platform_args: MockArgs, built_path: Path,
                               mode: ActivationMode) -> None:
        self._record("activate_configuration", platform_args, (Path(built_path), mode))

    def post_rebuild_hook(self, ctx, platform_args: MockArgs) -> None:
        self._record("post_rebuild_hook", platform_args)
