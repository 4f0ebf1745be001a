"""
Utility helpers: hostname lookup, Nix file discovery and output-path handling.
"""

import logging
import os
import socket
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

OUT_LINK_NAME = "result"


def get_hostname(explicit: Optional[str] = None) -> str:
    """
    Resolve the target hostname.

    Raises:
        ConfigurationError: If the system hostname cannot be determined
    """
    if explicit:
        return explicit
    try:
        hostname = socket.gethostname()
    except OSError as e:
        raise ConfigurationError(f"Unable to fetch hostname: {e}") from e
    if not hostname:
        raise ConfigurationError("Unable to fetch hostname: system returned an empty name")
    return hostname


def get_username() -> str:
    """Current user name from the environment."""
    for var in ("USER", "LOGNAME"):
        if os.environ.get(var):
            return os.environ[var]
    raise ConfigurationError("Unable to determine the current user (USER is unset)")


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".") and path.name not in (".", "..")


def find_nix_files(root: Path) -> List[Path]:
    """
    Recursively collect .nix files under root, skipping hidden entries.

    Returns:
        Sorted list of file paths
    """
    root = Path(root)
    if root.is_file():
        return [root] if root.suffix == ".nix" else []

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        # Prune hidden directories in place
        dirnames[:] = [d for d in dirnames if not is_hidden(Path(d))]
        for filename in filenames:
            path = Path(dirpath) / filename
            if is_hidden(path) or path.suffix != ".nix":
                continue
            found.append(path)
    found.sort()
    logger.debug("Found %d .nix files under %s", len(found), root)
    return found


@contextmanager
def manage_out_path(out_link: Optional[Path]) -> Iterator[Path]:
    """
    Yield the path the build result should be linked to.

    An explicit link gets its parent directories created and is used
    as-is. Otherwise a temporary directory holds the link and is removed
    when the context exits.
    """
    if out_link is not None:
        out_link = Path(out_link)
        if out_link.parent and not out_link.parent.exists():
            out_link.parent.mkdir(parents=True, exist_ok=True)
        yield out_link
        return

    with tempfile.TemporaryDirectory(prefix="ng-") as tmp:
        path = Path(tmp) / OUT_LINK_NAME
        logger.debug("Using temporary out link %s", path)
        yield path
