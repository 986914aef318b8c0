"""Error taxonomy shared across binstamp.

Every error raised on purpose derives from ``BinstampError`` so the CLI and
the batch runner can report failures per build combination without catching
unrelated exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence


class BinstampError(RuntimeError):
    """Base class for all binstamp failures."""


class InvalidArgumentError(BinstampError, ValueError):
    """Raised for malformed url/path/size inputs, before any I/O happens."""


class BundleReadError(BinstampError, OSError):
    """Raised when the application script cannot be read."""


class ProcessExitError(BinstampError):
    """Raised when an external tool exits with a non-zero code."""

    def __init__(self, command: str, args: Sequence[str], exit_code: int) -> None:
        self.command = command
        self.args_list = list(args)
        self.exit_code = exit_code
        super().__init__(
            f"{command} {' '.join(self.args_list)} exited with code: {exit_code}"
        )


class PatchError(BinstampError):
    """Raised when a source patch fails to apply cleanly."""

    def __init__(self, patch_name: str, exit_code: int) -> None:
        self.patch_name = patch_name
        self.exit_code = exit_code
        super().__init__(f"Failed to apply patch {patch_name} (exit code {exit_code})")


class SourceLayoutError(BinstampError):
    """Raised when the expanded source tree does not look like expected."""


class ArtifactNotFoundError(BinstampError, FileNotFoundError):
    """Raised when a compiled artifact is neither cached nor remotely available."""


class PlaceholderNotFoundError(BinstampError):
    """Raised when the placeholder for a slot size is absent from an artifact."""


class AmbiguousPlaceholderError(BinstampError):
    """Raised when the placeholder occurs more than once in an artifact."""


class TransportError(BinstampError):
    """Raised when an HTTP operation fails below the status-code level."""


class NonOKResponseError(TransportError):
    """Raised when a server answers with HTTP status >= 400."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"Non-OK response, statusCode={status_code}, url={url}")


class InvalidTransitionError(BinstampError):
    """Raised when a requested build state transition is not valid."""


class StageExecutionError(BinstampError):
    """Raised when a build stage fails; carries the stage and the root cause."""

    def __init__(self, stage_id: str, cause: BaseException) -> None:
        self.stage_id = stage_id
        self.cause = cause
        self.exit_code: int | None = getattr(cause, "exit_code", None)
        detail = f"Stage {stage_id} failed: {cause}"
        if isinstance(cause, ProcessExitError):
            detail += f" [command={cause.command}, exit_code={cause.exit_code}]"
        super().__init__(detail)
