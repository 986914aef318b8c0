"""Abstract base build stage with an enforced lifecycle.

Every concrete stage inherits from BaseBuildStage and implements
``is_done()`` and ``execute()``. The ``run_stage()`` wrapper is **not
overridable**; it enforces the lifecycle ordering:

    is_done (entry guard) -> execute -> wrap failures

so that every stage is idempotent against the file system and every failure
reaches the orchestrator as a ``StageExecutionError`` naming the stage.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import final

from binstamp.bridge.transport import Transport
from binstamp.config import StampSettings
from binstamp.core.artifact_cache import ArtifactCache, RemoteArtifactStore, build_artifact_name
from binstamp.core.errors import StageExecutionError
from binstamp.core.placeholder import compute_slot_size, generate_placeholder, read_bundle
from binstamp.core.process import ProcessRunner
from binstamp.core.toolchain import ContainerMode, ToolchainPlanner, result_file
from binstamp.models.build import BuildSpec, PlaceholderOfSize
from binstamp.models.host import HostEnvironment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildLayout:
    """On-disk locations used while building one runtime version."""

    build_dir: Path
    runtime_version: str
    host: HostEnvironment

    @property
    def source_archive(self) -> Path:
        return self.build_dir / f"node-v{self.runtime_version}.tar.gz"

    @property
    def source_dir(self) -> Path:
        return self.build_dir / f"node-v{self.runtime_version}"

    @property
    def pristine_dir(self) -> Path:
        return self.build_dir / "pristine" / self.runtime_version

    @property
    def result_file(self) -> Path:
        return result_file(self.host, self.source_dir)


@dataclass
class BuildContext:
    """Everything a stage needs for one build combination.

    The context is created by the orchestrator per run; ``module_content``
    and ``slot_size`` are derived lazily from the BuildSpec's application source.
    """

    spec: BuildSpec
    host: HostEnvironment
    settings: StampSettings
    runner: ProcessRunner
    transport: Transport
    planner: ToolchainPlanner
    layout: BuildLayout
    cache: ArtifactCache | None = None
    remote: RemoteArtifactStore | None = None
    container_mode: ContainerMode = ContainerMode.AUTO
    _module_content: bytes | None = field(default=None, init=False, repr=False)

    @property
    def module_content(self) -> bytes:
        """Bytes compiled into the app-main module for this spec."""
        if self._module_content is None:
            source = self.spec.source
            if isinstance(source, PlaceholderOfSize):
                self._module_content = generate_placeholder(source.megabytes)
            else:
                self._module_content = read_bundle(source.path, source.app_name).encode()
        return self._module_content

    @property
    def slot_size(self) -> int:
        source = self.spec.source
        if isinstance(source, PlaceholderOfSize):
            return source.megabytes
        return compute_slot_size(len(self.module_content))

    @property
    def artifact_name(self) -> str:
        return build_artifact_name(
            self.spec.platform_tag,
            self.spec.arch,
            self.spec.runtime_version,
            self.spec.build_version,
            self.slot_size,
        )


@dataclass(frozen=True)
class StageOutcome:
    skipped: bool
    detail: str | None = None


class BaseBuildStage(abc.ABC):
    """Abstract base for all build pipeline stages.

    Subclasses **must** implement:
        * ``stage_id``     — matches a ``StageDefinition`` (e.g. ``"compile"``).
        * ``display_name`` — human-readable name for logs and the summary.
        * ``is_done(ctx)`` — the file-system entry guard.
        * ``execute(ctx)`` — the stage's core logic.

    Subclasses **must not** override ``run_stage()``.
    """

    @property
    @abc.abstractmethod
    def stage_id(self) -> str: ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str: ...

    @abc.abstractmethod
    def is_done(self, ctx: BuildContext) -> bool:
        """Return ``True`` if the stage's output already exists on disk."""
        ...

    @abc.abstractmethod
    def execute(self, ctx: BuildContext) -> str | None:
        """Do the stage's work; may return a short detail for the run log."""
        ...

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    def run_stage(self, ctx: BuildContext) -> StageOutcome:
        """Run the entry guard, then ``execute()`` if the work is not done.

        Any exception is re-raised as ``StageExecutionError`` carrying this
        stage's id and the original cause.
        """
        try:
            if self.is_done(ctx):
                logger.info("%s [%s] already done, skipping", self.display_name, self.stage_id)
                return StageOutcome(skipped=True, detail="already done")
            logger.info("%s [%s] starting: %s", self.display_name, self.stage_id, ctx.spec.describe())
            detail = self.execute(ctx)
        except StageExecutionError:
            raise
        except Exception as exc:
            logger.error("%s [%s] failed: %s", self.display_name, self.stage_id, exc)
            raise StageExecutionError(self.stage_id, exc) from exc
        return StageOutcome(skipped=False, detail=detail)
