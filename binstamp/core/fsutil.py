"""Filesystem helpers: idempotent directory creation, cleanup, disk diagnostics."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def mkdirp(path: Path) -> Path:
    """Create ``path`` and any missing parents.

    Succeeds if the directory already exists; raises ``FileExistsError`` if
    ``path`` (or a parent) exists but is not a directory.
    """
    path = Path(path)
    try:
        path.mkdir()
    except FileNotFoundError:
        mkdirp(path.parent)
        return mkdirp(path)
    except FileExistsError:
        if not path.is_dir():
            raise
    return path


def remove_tree(path: Path) -> bool:
    """Remove a directory tree or file. Returns ``False`` if there was nothing to remove."""
    path = Path(path)
    if not path.exists():
        return False
    logger.info("cleaning up %s", path)
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


def log_disk_usage(path: Path) -> None:
    """Log free/used space for the volume holding ``path``.

    Purely informational; never raises.
    """
    probe = Path(path)
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        usage = shutil.disk_usage(probe)
    except OSError as exc:
        logger.warning("could not read disk usage for %s: %s", probe, exc)
        return
    gib = 1024**3
    logger.info(
        "disk usage for %s: total=%.1fGiB used=%.1fGiB free=%.1fGiB",
        probe,
        usage.total / gib,
        usage.used / gib,
        usage.free / gib,
    )
