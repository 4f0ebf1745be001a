"""
Progress indicators for long-running steps.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

logger = logging.getLogger(__name__)


@contextmanager
def spinner(message: str, console: Optional[Console] = None) -> Iterator[None]:
    """
    Show a transient spinner while the body runs.

    Falls back to a debug log line when stderr is not a terminal.
    """
    console = console or Console(stderr=True)
    if not console.is_terminal:
        logger.debug(message)
        yield
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(message, total=None)
        yield
