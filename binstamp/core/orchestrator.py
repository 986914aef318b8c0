"""Source build orchestrator — drives one BuildSpec through the build stages.

The SourceBuildOrchestrator wires together the HostEnvironment, the
ProcessRunner, the Transport, the ToolchainPlanner, the ArtifactCache and
the BuildStageMachine, then runs the stages in ``STAGE_ORDER``. Each stage
fast-forwards through work already on disk, so re-running a finished build
is cheap and re-running a failed one resumes where it stopped.

The BatchRunner runs many BuildSpecs and reports every outcome at the end.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from binstamp.bridge.transport import Transport
from binstamp.config import StampSettings
from binstamp.core.artifact_cache import ArtifactCache, RemoteArtifactStore
from binstamp.core.errors import BinstampError, StageExecutionError
from binstamp.core.fsutil import log_disk_usage, remove_tree
from binstamp.core.process import ProcessRunner
from binstamp.core.stage_machine import BuildStageMachine
from binstamp.core.toolchain import ContainerMode, ToolchainPlanner
from binstamp.models.build import BatchFailure, BatchReport, BuildResult, BuildSpec
from binstamp.models.host import HostEnvironment
from binstamp.models.stages import BuildState
from binstamp.stages import STAGE_ORDER, get_stage
from binstamp.stages.base import BuildContext, BuildLayout

logger = logging.getLogger(__name__)


class SourceBuildOrchestrator:
    """Builds one runtime from source for one BuildSpec.

    Parameters
    ----------
    spec:
        The build combination.
    settings:
        Runtime settings. Uses the environment-driven defaults if not provided.
    host:
        The build host. Detected from the current process if not provided.
    runner:
        Runs external commands (patch, configure, make, docker).
    transport:
        HTTP transport for source download and artifact upload.
    cache:
        Copy the compiled executable into the local artifact cache.
    upload:
        Upload the compiled executable to the remote release.
    container:
        Whether a Linux build may, must or must not use the builder image.
    """

    def __init__(
        self,
        spec: BuildSpec,
        *,
        settings: StampSettings | None = None,
        host: HostEnvironment | None = None,
        runner: ProcessRunner | None = None,
        transport: Transport | None = None,
        cache: bool = False,
        upload: bool = False,
        container: ContainerMode = ContainerMode.AUTO,
    ) -> None:
        self.spec = spec
        self.settings = settings or StampSettings()
        self.host = host or HostEnvironment.current()
        self.runner = runner or ProcessRunner()
        self.transport = transport or Transport(
            timeout=self.settings.http_timeout,
            retries=self.settings.http_retries,
            backoff_seconds=self.settings.http_backoff_seconds,
        )
        self.stage_machine = BuildStageMachine()

        remote = None
        if upload:
            remote = RemoteArtifactStore(
                self.transport,
                download_base_url=self.settings.release_download_url,
                release_api_url=self.settings.release_api_url,
                token=self.settings.github_token,
            )
        local = ArtifactCache(self.settings.cache_dir) if cache else None

        workdir = self.settings.workdir.resolve()
        self.layout = BuildLayout(
            build_dir=workdir / "build",
            runtime_version=spec.runtime_version,
            host=self.host,
        )
        self.context = BuildContext(
            spec=spec,
            host=self.host,
            settings=self.settings,
            runner=self.runner,
            transport=self.transport,
            planner=ToolchainPlanner(
                self.host,
                builder_image=self.settings.builder_image,
                builder_image_version=self.settings.builder_image_version,
                builder_setup=self.settings.builder_setup,
                workdir=workdir,
            ),
            layout=self.layout,
            cache=local,
            remote=remote,
            container_mode=container,
        )

    @property
    def publishes(self) -> bool:
        return self.context.cache is not None or self.context.remote is not None

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(self) -> BuildResult:
        """Run every stage in order and return the result.

        On failure the stage machine moves to FAILED, disk usage of the
        work directory is logged and the ``StageExecutionError`` propagates.
        Calling it again after a failure restarts the machine and resumes from
        whatever the earlier attempt left on disk.
        """
        logger.info("build starting: %s", self.spec.describe())
        if self.stage_machine.state is BuildState.FAILED:
            self.stage_machine.restart()
        for stage_id in STAGE_ORDER:
            if stage_id == "publish" and not self.publishes:
                logger.debug("caching and uploading disabled, stopping before publish")
                break
            stage = get_stage(stage_id)
            try:
                outcome = stage.run_stage(self.context)
            except StageExecutionError as exc:
                self.stage_machine.fail(stage_id, str(exc.cause))
                log_disk_usage(self.settings.workdir)
                raise
            self.stage_machine.complete(stage_id, skipped=outcome.skipped, detail=outcome.detail)

        result = BuildResult(
            spec=self.spec,
            state=self.stage_machine.state,
            slot_size=self.context.slot_size,
            artifact_name=self.context.artifact_name,
            result_file=self.layout.result_file,
            transitions=self.stage_machine.transitions,
        )
        logger.info(
            "build finished: %s state=%s artifact=%s",
            self.spec.describe(),
            result.state.value,
            result.artifact_name,
        )
        return result

    def cleanup(self) -> list[str]:
        """Remove the expanded tree, pristine snapshots and source archive."""
        removed = []
        for path in (self.layout.source_dir, self.layout.pristine_dir, self.layout.source_archive):
            if remove_tree(path):
                removed.append(str(path))
        return removed


class BatchRunner:
    """Runs many BuildSpecs and collects results and failures.

    Parameters
    ----------
    factory:
        Creates the orchestrator for one spec.
    fail_fast:
        Stop scheduling new builds after the first failure.
    max_workers:
        Builds run sequentially when 1; a bounded thread pool otherwise.
    """

    def __init__(
        self,
        factory: Callable[[BuildSpec], SourceBuildOrchestrator],
        *,
        fail_fast: bool = False,
        max_workers: int = 1,
    ) -> None:
        self._factory = factory
        self._fail_fast = fail_fast
        self._max_workers = max(1, max_workers)

    def run(self, specs: Iterable[BuildSpec]) -> BatchReport:
        specs = list(specs)
        results: list[BuildResult] = []
        failures: list[BatchFailure] = []

        if self._max_workers == 1:
            for spec in specs:
                outcome = self._run_one(spec)
                if isinstance(outcome, BatchFailure):
                    failures.append(outcome)
                    if self._fail_fast:
                        break
                else:
                    results.append(outcome)
            return BatchReport(results=results, failures=failures)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = [pool.submit(self._run_one, spec) for spec in specs]
            for future in futures:
                if future.cancelled():
                    continue
                outcome = future.result()
                if isinstance(outcome, BatchFailure):
                    failures.append(outcome)
                    if self._fail_fast:
                        for pending in futures:
                            pending.cancel()
                else:
                    results.append(outcome)
        return BatchReport(results=results, failures=failures)

    def _run_one(self, spec: BuildSpec) -> BuildResult | BatchFailure:
        try:
            return self._factory(spec).run()
        except StageExecutionError as exc:
            logger.error("build failed: %s: %s", spec.describe(), exc)
            return BatchFailure(
                spec=spec, error=str(exc), stage_id=exc.stage_id, exit_code=exc.exit_code
            )
        except BinstampError as exc:
            logger.error("build failed: %s: %s", spec.describe(), exc)
            return BatchFailure(spec=spec, error=str(exc))
