"""Stage 1 — Acquire Source.

Downloads the upstream source tarball for the runtime version and expands it
into ``<build>/node-v<V>/``. The tree counts as acquired once ``configure``
exists in it.

An archive left over from an earlier run is reused. If it cannot be read
(truncated or corrupted on disk) it is discarded together with the
half-expanded tree and fetched once more.
"""

from __future__ import annotations

import logging
import tarfile

from binstamp.core.errors import SourceLayoutError
from binstamp.core.fsutil import mkdirp, remove_tree
from binstamp.stages.base import BaseBuildStage, BuildContext, BuildLayout

logger = logging.getLogger(__name__)

_UNREADABLE_ARCHIVE = (tarfile.TarError, EOFError)


def source_url(base_url: str, runtime_version: str) -> str:
    return f"{base_url.rstrip('/')}/v{runtime_version}/node-v{runtime_version}.tar.gz"


def expand_archive(layout: BuildLayout) -> None:
    """Extract the source archive into the build directory.

    On a read error the archive and any partially expanded tree are removed
    before the error propagates.
    """
    logger.info("expanding %s", layout.source_archive)
    try:
        with tarfile.open(layout.source_archive, "r:gz") as tar:
            tar.extractall(layout.build_dir, filter="data")
    except _UNREADABLE_ARCHIVE:
        remove_tree(layout.source_archive)
        remove_tree(layout.source_dir)
        raise


class AcquireSourceStage(BaseBuildStage):
    """Download and extract the runtime source tree."""

    @property
    def stage_id(self) -> str:
        return "acquire"

    @property
    def display_name(self) -> str:
        return "Acquire Source"

    def is_done(self, ctx: BuildContext) -> bool:
        return (ctx.layout.source_dir / "configure").is_file()

    def execute(self, ctx: BuildContext) -> str | None:
        layout = ctx.layout
        mkdirp(layout.build_dir)

        archive = layout.source_archive
        if archive.is_file():
            logger.info("source archive %s already downloaded", archive)
            try:
                expand_archive(layout)
            except _UNREADABLE_ARCHIVE as exc:
                logger.warning("discarded unreadable %s (%s), downloading again", archive.name, exc)
                self._download(ctx)
                self._expand_fresh(layout)
        else:
            self._download(ctx)
            self._expand_fresh(layout)

        if not (layout.source_dir / "configure").is_file():
            raise SourceLayoutError(
                f"{archive.name} did not expand to {layout.source_dir}/configure"
            )
        return f"expanded {archive.name}"

    def _download(self, ctx: BuildContext) -> None:
        url = source_url(ctx.settings.source_base_url, ctx.spec.runtime_version)
        logger.info("downloading %s", url)
        ctx.transport.download(url, ctx.layout.source_archive)

    def _expand_fresh(self, layout: BuildLayout) -> None:
        try:
            expand_archive(layout)
        except _UNREADABLE_ARCHIVE as exc:
            raise SourceLayoutError(
                f"downloaded {layout.source_archive.name} is not a readable archive: {exc}"
            ) from exc
