"""Source patching for the expanded runtime tree.

Two kinds of edits are made to the upstream tree:

1. **Patch files** — an ordered ``PatchSet`` applied with ``patch -p1``.
   Steps are gated on runtime major version and host platform; a missing
   patch file is skipped (patches are additive per version), a patch that is
   already applied is detected with a reverse dry run and skipped, and a
   failing patch raises ``PatchError``.
2. **File installs** — the entrypoint shim, the app-main module and the
   manifest entries, through ``PristineFiles``. Whole-file installs simply
   replace the working file. In-place edits (the manifest) snapshot the
   upstream file once before the first edit, and every later edit starts
   again from that snapshot, so repeated runs never compound edits.
"""

from __future__ import annotations

import logging
import re
import shutil
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from binstamp.core.errors import PatchError, SourceLayoutError
from binstamp.core.fsutil import mkdirp
from binstamp.core.process import ProcessRunner
from binstamp.models.host import HostEnvironment

logger = logging.getLogger(__name__)

SHIM_RELPATH = "lib/_third_party_main.js"
APP_MODULE_RELPATH = "lib/_binstamp_app_main.js"
MANIFEST_RELPATH = "node.gyp"

_LIBRARY_FILES_RE = re.compile(r"(['\"]library_files['\"]\s*:\s*\[)")


class PatchStep(BaseModel):
    """One named patch file and the conditions under which it applies."""

    model_config = ConfigDict(frozen=True)

    name: str
    min_major: int = 15
    hosts: frozenset[str] | None = None  # None -> every host platform

    def applies_to(self, runtime_major: int, host: HostEnvironment) -> bool:
        if runtime_major < self.min_major:
            return False
        return self.hosts is None or host.platform in self.hosts


_WINDOWS = frozenset({"windows"})
_LINUX = frozenset({"linux", "alpine"})

# Applied in this order. The Windows-only pointer-compression fixes are
# valid on Linux too but are kept Windows-only.
DEFAULT_PATCH_SET: list[PatchStep] = [
    PatchStep(name="run_third_party_main.js.patch"),
    PatchStep(name="node.cc.patch"),
    PatchStep(name="node.gyp.patch"),
    PatchStep(name="vcbuild.bat.patch", hosts=_WINDOWS),
    PatchStep(name="v8config.patch", hosts=_WINDOWS),
    PatchStep(name="configure.py.patch", hosts=_WINDOWS),
    PatchStep(name="node_buffer.cc.patch", hosts=_WINDOWS),
    PatchStep(name="v8_backing_store_callers.patch", hosts=_WINDOWS),
    PatchStep(name="no_rand_on_glibc.patch", hosts=_LINUX),
    PatchStep(name="patch-json-stringifier-cc.patch"),
]


class PatchStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    MISSING = "missing"
    NOT_APPLICABLE = "not_applicable"


class PatchApplier:
    """Applies a ``PatchSet`` to an expanded source tree.

    Parameters
    ----------
    runner:
        Process runner used to invoke ``patch``.
    patch_dir:
        Directory holding this runtime version's patch files.
    host:
        Host description; platform-restricted steps only run on their host.
    patch_set:
        Ordered steps; defaults to ``DEFAULT_PATCH_SET``.
    patch_command:
        Executable used to apply patches.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        patch_dir: Path,
        host: HostEnvironment,
        patch_set: list[PatchStep] | None = None,
        *,
        patch_command: str = "patch",
    ) -> None:
        self._runner = runner
        self._patch_dir = Path(patch_dir)
        self._host = host
        self._steps = list(patch_set if patch_set is not None else DEFAULT_PATCH_SET)
        self._patch_command = patch_command

    def apply_all(self, source_dir: Path, runtime_major: int) -> dict[str, PatchStatus]:
        """Apply every step in order; returns the status of each step by name."""
        results: dict[str, PatchStatus] = {}
        for step in self._steps:
            if not step.applies_to(runtime_major, self._host):
                results[step.name] = PatchStatus.NOT_APPLICABLE
                continue
            results[step.name] = self.apply(source_dir, step.name)
        applied = [name for name, status in results.items() if status is PatchStatus.APPLIED]
        logger.info("patches applied to %s: %s", source_dir, ", ".join(applied) or "none")
        return results

    def apply(self, source_dir: Path, patch_name: str) -> PatchStatus:
        """Apply a single named patch from the patch directory."""
        patch_file = self._patch_dir / patch_name
        if not patch_file.is_file():
            logger.debug("patch %s not present in %s, skipping", patch_name, self._patch_dir)
            return PatchStatus.MISSING

        reverse_check = self._runner.run(
            self._patch_command,
            ["-p1", "-R", "--dry-run", "-s", "-f", "-i", str(patch_file)],
            cwd=source_dir,
            check=False,
        )
        if reverse_check == 0:
            logger.info("patch %s already applied, skipping", patch_name)
            return PatchStatus.ALREADY_APPLIED

        code = self._runner.run(
            self._patch_command,
            ["-p1", "--forward", "-s", "-i", str(patch_file)],
            cwd=source_dir,
            check=False,
        )
        if code != 0:
            raise PatchError(patch_name, code)
        return PatchStatus.APPLIED


class PristineFiles:
    """Working copy vs pristine copy of the source files binstamp edits.

    Parameters
    ----------
    source_dir:
        The working source tree that gets compiled.
    pristine_dir:
        Where untouched snapshots are kept, mirroring ``source_dir`` paths.
    """

    def __init__(self, source_dir: Path, pristine_dir: Path) -> None:
        self._source = Path(source_dir)
        self._pristine = Path(pristine_dir)

    def working_path(self, relpath: str) -> Path:
        return self._source / relpath

    def pristine_path(self, relpath: str) -> Path:
        return self._pristine / relpath

    def checkout(self, relpath: str) -> Path:
        """Return the working path of ``relpath``, reset to its pristine content.

        The first call snapshots the current working file (if any); the
        snapshot is never overwritten afterwards.
        """
        working = self.working_path(relpath)
        pristine = self.pristine_path(relpath)
        if pristine.is_file():
            shutil.copyfile(pristine, working)
        elif working.is_file():
            mkdirp(pristine.parent)
            shutil.copyfile(working, pristine)
        return working

    # ------------------------------------------------------------------
    # Tracked mutations
    # ------------------------------------------------------------------

    def install_file(self, source_file: Path, relpath: str) -> Path:
        """Replace ``relpath`` wholesale with a copy of ``source_file``."""
        working = self.working_path(relpath)
        mkdirp(working.parent)
        shutil.copyfile(source_file, working)
        return working

    def write_bytes(self, relpath: str, data: bytes) -> Path:
        working = self.working_path(relpath)
        mkdirp(working.parent)
        working.write_bytes(data)
        return working

    def inject_library_files(self, relpath: str, entries: list[str]) -> Path:
        """Add ``entries`` to the ``library_files`` list of a gyp manifest.

        Manifests that collect ``lib/`` through a glob variable already pick
        the new modules up and are left alone.
        """
        working = self.checkout(relpath)
        if not working.is_file():
            raise SourceLayoutError(f"manifest {working} does not exist")
        text = working.read_text(encoding="utf-8")

        if "<@(node_library_files)" in text:
            logger.debug("%s globs lib/, no library_files injection needed", relpath)
            return working

        match = _LIBRARY_FILES_RE.search(text)
        if match is None:
            raise SourceLayoutError(f"no library_files list found in {working}")

        missing = [entry for entry in entries if f"'{entry}'" not in text]
        if missing:
            line_start = text.rfind("\n", 0, match.start()) + 1
            indent = " " * (match.start() - line_start + 2)
            insertion = "".join(f"\n{indent}'{entry}'," for entry in missing)
            text = text[: match.end()] + insertion + text[match.end() :]
            working.write_text(text, encoding="utf-8")
            logger.info("added %s to %s", ", ".join(missing), relpath)
        return working
