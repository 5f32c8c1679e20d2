"""Logging setup for the CLI. Library modules only call ``logging.getLogger``."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_MARK = "_codeguard_handler"


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Install one rich handler on the root logger; repeated calls only adjust the level."""
    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.WARNING
    root.setLevel(level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_MARK, False):
            handler.setLevel(level)
            return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setLevel(level)
    setattr(handler, _HANDLER_MARK, True)
    root.addHandler(handler)
