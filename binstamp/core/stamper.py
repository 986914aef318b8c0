"""Binary stamping — the fast path that needs no compiler.

Given a compiled runtime whose app-main module still holds the placeholder
for slot size S, and an application bundle whose encoded length maps to the
same S, stamping:

    1. regenerates the placeholder for S and searches the image for it;
    2. requires exactly one match (zero -> wrong size class or corrupt
       artifact, two or more -> the build embedded the slot twice);
    3. zero-fills the whole matched region, then writes the bundle at the
       match offset, so nothing from the placeholder survives past the
       payload;
    4. writes the result as a complete executable.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from binstamp.core.artifact_cache import ArtifactCache, build_artifact_name
from binstamp.core.errors import (
    AmbiguousPlaceholderError,
    InvalidArgumentError,
    PlaceholderNotFoundError,
)
from binstamp.core.fsutil import mkdirp
from binstamp.core.placeholder import compute_slot_size, generate_placeholder, read_bundle
from binstamp.models.artifacts import AppBundle, StampResult

logger = logging.getLogger(__name__)


def find_placeholder(image: bytes | bytearray, placeholder: bytes) -> int:
    """Return the offset of the single occurrence of ``placeholder`` in ``image``."""
    offset = image.find(placeholder)
    if offset < 0:
        raise PlaceholderNotFoundError(
            f"placeholder of {len(placeholder)} bytes not found in artifact image"
        )
    if image.find(placeholder, offset + 1) >= 0:
        raise AmbiguousPlaceholderError(
            f"placeholder of {len(placeholder)} bytes occurs more than once "
            f"(first at offset {offset})"
        )
    return offset


def stamp_image(image: bytearray, payload: bytes, slot_size: int) -> int:
    """Overwrite the slot placeholder in ``image`` with ``payload`` in place.

    Returns the offset at which the payload was written.
    """
    placeholder = generate_placeholder(slot_size)
    if len(payload) >= len(placeholder):
        raise InvalidArgumentError(
            f"payload of {len(payload)} bytes does not fit a {slot_size}MB slot"
        )
    offset = find_placeholder(image, placeholder)
    end = offset + len(placeholder)
    image[offset:end] = bytes(len(placeholder))
    image[offset : offset + len(payload)] = payload
    return offset


def stamp_file(
    artifact_path: Path,
    bundle: AppBundle,
    output_path: Path,
    *,
    slot_size: int | None = None,
    artifact_name: str = "",
) -> StampResult:
    """Stamp ``bundle`` into a copy of ``artifact_path`` written to ``output_path``."""
    payload = bundle.encode()
    slot = slot_size if slot_size is not None else compute_slot_size(len(payload))

    image = bytearray(Path(artifact_path).read_bytes())
    try:
        offset = stamp_image(image, payload, slot)
    except PlaceholderNotFoundError as exc:
        raise PlaceholderNotFoundError(
            f"Could not find {slot}MB placeholder in file={artifact_path}"
        ) from exc

    output_path = Path(output_path)
    mkdirp(output_path.parent)
    logger.info("writing native binary %s", output_path)
    output_path.write_bytes(image)
    mode = os.stat(output_path).st_mode
    os.chmod(output_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    return StampResult(
        output_path=output_path,
        artifact_name=artifact_name or Path(artifact_path).name,
        slot_size=slot,
        offset=offset,
        bundle_length=len(payload),
    )


def stamp_application(
    script_path: Path,
    *,
    cache: ArtifactCache,
    runtime_version: str,
    platform: str,
    arch: str,
    build_version: str = "v1",
    app_name: str | None = None,
    output_path: Path | None = None,
    slot_size: int | None = None,
    keep_artifact: bool = False,
) -> StampResult:
    """Produce a distributable executable for one (version, platform, arch).

    The matching compiled runtime is taken from ``cache`` (downloaded from
    its remote store on a miss). A freshly downloaded artifact is removed
    again afterwards unless ``keep_artifact`` is set.
    """
    bundle = read_bundle(script_path, app_name)
    payload_length = bundle.encoded_length
    slot = slot_size if slot_size is not None else compute_slot_size(payload_length)

    name = build_artifact_name(platform, arch, runtime_version, build_version, slot)
    artifact = cache.resolve(name, slot)
    output = Path(output_path or f"app-{platform}-{arch}-{runtime_version}").resolve()

    try:
        result = stamp_file(
            artifact.path, bundle, output, slot_size=slot, artifact_name=name
        )
    finally:
        if artifact.downloaded and not keep_artifact:
            cache.evict(name)
    return result
