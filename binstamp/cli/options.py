"""Helpers shared by the CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from binstamp.config import StampSettings, settings
from binstamp.core.errors import BinstampError

# Rendered as a one-line message; pydantic's ValidationError is a ValueError.
CLI_ERRORS = (BinstampError, ValueError)


def configure_logging(level: str, console: Console | None = None) -> None:
    """Route ``binstamp.*`` loggers through a RichHandler at ``level``."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger("binstamp")
    package_logger.handlers[:] = [handler]
    package_logger.setLevel(level.upper())


def settings_for(workdir: Path | None) -> StampSettings:
    """Return the global settings, with ``workdir`` overridden when given."""
    if workdir is None:
        return settings
    return settings.model_copy(update={"workdir": workdir})


def split_values(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma-separated option values."""
    out: list[str] = []
    for value in values or []:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return out
