"""External process execution.

Compilers, ``patch`` and ``docker`` are collaborators: they are run to
completion and only their exit code (and, for probes, their stdout) is
consumed. ``ProcessRunner`` is the single seam tests replace.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from binstamp.core.errors import ProcessExitError

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Runs external commands and surfaces non-zero exits as ``ProcessExitError``.

    Parameters
    ----------
    verbose:
        Inherit stdout/stderr when ``True``; discard output otherwise.
    """

    def __init__(self, *, verbose: bool = True) -> None:
        self._verbose = verbose

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> int:
        """Run ``command args`` to completion and return its exit code.

        Raises ``ProcessExitError`` on a non-zero exit when ``check`` is set.
        """
        logger.info("running: %s %s ...", command, " ".join(args))
        output = None if self._verbose else subprocess.DEVNULL
        try:
            completed = subprocess.run(
                [command, *args],
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdout=output,
                stderr=output,
            )
        except FileNotFoundError as exc:
            raise ProcessExitError(command, args, 127) from exc

        if check and completed.returncode != 0:
            raise ProcessExitError(command, args, completed.returncode)
        return completed.returncode

    def capture(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
    ) -> str | None:
        """Run a probe command and return its stdout, or ``None`` if it failed."""
        try:
            completed = subprocess.run(
                [command, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
            )
        except OSError:
            return None
        if completed.returncode != 0:
            return None
        return completed.stdout.strip()
