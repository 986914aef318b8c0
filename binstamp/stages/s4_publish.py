"""Stage 4 — Cache & Publish.

Copies the compiled executable into the local artifact cache and uploads it
to the remote release, each only when enabled and not already present.
"""

from __future__ import annotations

import logging

from binstamp.stages.base import BaseBuildStage, BuildContext

logger = logging.getLogger(__name__)


class PublishArtifactStage(BaseBuildStage):
    """Store the compiled runtime under its artifact name."""

    @property
    def stage_id(self) -> str:
        return "publish"

    @property
    def display_name(self) -> str:
        return "Cache & Publish"

    def is_done(self, ctx: BuildContext) -> bool:
        name = ctx.artifact_name
        if ctx.cache is not None and not ctx.cache.exists(name):
            return False
        if ctx.remote is not None and not ctx.remote.exists(name):
            return False
        return True

    def execute(self, ctx: BuildContext) -> str | None:
        name = ctx.artifact_name
        result = ctx.layout.result_file
        done: list[str] = []

        if ctx.cache is not None:
            ctx.cache.store(name, result)
            done.append("cached")

        if ctx.remote is not None:
            if ctx.remote.exists(name):
                logger.info("build name=%s already uploaded, skipping", name)
            else:
                ctx.remote.publish(name, result)
                done.append("uploaded")

        return f"{name} {' and '.join(done) or 'already published'}"
