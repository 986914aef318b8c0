"""Stage 2 — Patch Source.

Applies the version's patch set, installs the entrypoint shim and writes the
app-main module holding either the placeholder or a real encoded bundle.
The module is written last, so its presence with the expected content means
every earlier step of this stage has completed.
"""

from __future__ import annotations

import logging
from importlib import resources

from binstamp.core.patcher import (
    APP_MODULE_RELPATH,
    MANIFEST_RELPATH,
    SHIM_RELPATH,
    PatchApplier,
    PatchStatus,
    PristineFiles,
)
from binstamp.stages.base import BaseBuildStage, BuildContext

logger = logging.getLogger(__name__)

SHIM_RESOURCE = "_third_party_main.js"


class PatchSourceStage(BaseBuildStage):
    """Patch the expanded tree and install the application module."""

    @property
    def stage_id(self) -> str:
        return "patch"

    @property
    def display_name(self) -> str:
        return "Patch Source"

    def is_done(self, ctx: BuildContext) -> bool:
        source_dir = ctx.layout.source_dir
        module = source_dir / APP_MODULE_RELPATH
        if not (source_dir / SHIM_RELPATH).is_file() or not module.is_file():
            return False
        return module.read_bytes() == ctx.module_content

    def execute(self, ctx: BuildContext) -> str | None:
        layout = ctx.layout
        patch_dir = ctx.settings.resolved_patch_dir / ctx.spec.runtime_version
        applier = PatchApplier(ctx.runner, patch_dir, ctx.host)
        statuses = applier.apply_all(layout.source_dir, ctx.spec.runtime_major)

        files = PristineFiles(layout.source_dir, layout.pristine_dir)
        shim = resources.files("binstamp.resources") / SHIM_RESOURCE
        with resources.as_file(shim) as shim_path:
            files.install_file(shim_path, SHIM_RELPATH)
        files.inject_library_files(MANIFEST_RELPATH, [SHIM_RELPATH, APP_MODULE_RELPATH])

        content = ctx.module_content
        files.write_bytes(APP_MODULE_RELPATH, content)
        logger.info(
            "wrote %s (%d bytes, %dMB slot)", APP_MODULE_RELPATH, len(content), ctx.slot_size
        )

        applied = sum(1 for status in statuses.values() if status is PatchStatus.APPLIED)
        return f"{applied} patches applied, {ctx.slot_size}MB module installed"
