"""Stage 3 — Compile Runtime.

Runs the toolchain plan for the host. The compiled executable is reused only
when it embeds exactly the module content written by the patch stage; a build
of the same version for a different slot size therefore recompiles.
"""

from __future__ import annotations

import logging
import mmap
from pathlib import Path

from binstamp.core.errors import SourceLayoutError
from binstamp.core.toolchain import probe_compiler_major
from binstamp.stages.base import BaseBuildStage, BuildContext

logger = logging.getLogger(__name__)


def file_contains(path: Path, needle: bytes) -> bool:
    """Return ``True`` if ``needle`` occurs in the file at ``path``."""
    if not needle:
        return True
    with open(path, "rb") as fh:
        if fh.seek(0, 2) < len(needle):
            return False
        with mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) as view:
            return view.find(needle) >= 0


class CompileRuntimeStage(BaseBuildStage):
    """Configure and compile the patched runtime."""

    @property
    def stage_id(self) -> str:
        return "compile"

    @property
    def display_name(self) -> str:
        return "Compile Runtime"

    def is_done(self, ctx: BuildContext) -> bool:
        result = ctx.layout.result_file
        return result.is_file() and file_contains(result, ctx.module_content)

    def execute(self, ctx: BuildContext) -> str | None:
        compiler_major = None
        if ctx.host.is_linux:
            compiler_major = probe_compiler_major(ctx.runner)
        plan = ctx.planner.plan(
            ctx.spec,
            ctx.layout.source_dir,
            mode=ctx.container_mode,
            compiler_major=compiler_major,
        )
        for step in plan.steps:
            ctx.runner.run(step.command, step.args, cwd=step.cwd, env=step.env)

        result = ctx.layout.result_file
        if not result.is_file():
            raise SourceLayoutError(f"build finished but {result} does not exist")
        logger.info("RESULTS: %s", result)
        return plan.reason
