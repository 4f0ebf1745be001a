"""
Platform Strategy Base

Interface implemented by every rebuild target (NixOS, nix-darwin,
Home-Manager). The workflow executor only talks to this interface.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional

from ..installable import Installable

if TYPE_CHECKING:
    from ..context import OperationContext


class ActivationMode(str, Enum):
    """What to do with the built configuration."""
    SWITCH = "switch"
    BOOT = "boot"
    TEST = "test"
    BUILD = "build"


class PlatformRebuildStrategy(ABC):
    """
    Abstract base class for platform strategies.

    Each strategy pairs with a platform argument type (``args_type``)
    carrying its platform-specific command-line options.
    """

    name: str = "Unnamed Platform"
    args_type: Any = None
    toplevel_suffix: List[str] = []

    def pre_rebuild_hook(self, ctx: "OperationContext", platform_args: Any) -> None:
        """Guard run before anything else; raise to abort."""
        pass

    @abstractmethod
    def get_toplevel_installable(self, ctx: "OperationContext", platform_args: Any) -> Installable:
        """
        Resolve the installable that builds the whole configuration.

        Returns:
            The user's installable, completed with the platform default
            attribute path when none was given
        """
        pass

    @abstractmethod
    def get_current_profile_path(self, ctx: "OperationContext", platform_args: Any) -> Optional[Path]:
        """
        Currently active profile to diff against.

        Returns:
            Path, or None when the platform has nothing to diff against
        """
        pass

    @abstractmethod
    def activate_configuration(
        self,
        ctx: "OperationContext",
        platform_args: Any,
        built_path: Path,
        mode: ActivationMode,
    ) -> None:
        """
        Activate a built configuration.

        Never called for ActivationMode.BUILD.

        Raises:
            NgError: If the activation entry point is missing or fails
        """
        pass

    def post_rebuild_hook(self, ctx: "OperationContext", platform_args: Any) -> None:
        """Final step after a successful rebuild."""
        pass

    def get_repl_installable(self, ctx: "OperationContext", platform_args: Any) -> Installable:
        """The configuration attribute itself, without the toplevel suffix."""
        installable = self.get_toplevel_installable(ctx, platform_args)
        attribute = installable.attribute
        suffix = self.toplevel_suffix
        if suffix and attribute[-len(suffix):] == suffix:
            return installable.with_attribute(attribute[:-len(suffix)])
        return installable
