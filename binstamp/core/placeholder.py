"""Placeholder codec — slot sizing, marker bytes and bundle encoding.

A slot is a whole, even number of MiB. The placeholder compiled into the
runtime for a slot is a pure function of its size so the stamper can
regenerate it and find it by exact byte search:

    `~N~o~D~e~o~N~e~\\n~N~o~D~e~o~N~e~\\n ... ~N~o~D~e~o~N~e`

(one backtick on each side, the 16-byte marker repeated and truncated so the
whole sequence is exactly ``slot * 1024 * 1024`` bytes). The backticks make
the compiled-in module a valid template literal.
"""

from __future__ import annotations

import gzip
import logging
import re
from functools import lru_cache
from pathlib import Path

from binstamp.core.errors import BundleReadError, InvalidArgumentError
from binstamp.models.artifacts import AppBundle

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
MIN_SLOT_SIZE = 2
MARKER = b"~N~o~D~e~o~N~e~\n"
DELIMITER = b"`"

_SIZE_RE = re.compile(r"^(?:__)?(\d+)(?:MB)?(?:__)?$", re.IGNORECASE)


def compute_slot_size(bundle_length: int) -> int:
    """Return the even slot size (MiB) that strictly fits ``bundle_length`` bytes."""
    if bundle_length < 0:
        raise InvalidArgumentError(f"bundle length must be >= 0, got {bundle_length}")
    size = bundle_length // MIB + 1
    if size % 2 != 0:
        size += 1
    return max(size, MIN_SLOT_SIZE)


def parse_slot_size(value: str | int) -> int:
    """Parse ``4``, ``"4MB"``, ``"4mb"`` or ``"__4MB__"`` into a slot size."""
    match = _SIZE_RE.match(str(value).strip())
    if match is None:
        raise InvalidArgumentError(f"invalid slot size {value!r}; expected e.g. 4MB")
    size = int(match.group(1))
    if size < MIN_SLOT_SIZE or size % 2 != 0:
        raise InvalidArgumentError(
            f"slot size must be an even number of MB >= {MIN_SLOT_SIZE}, got {size}"
        )
    return size


@lru_cache(maxsize=4)
def generate_placeholder(slot_size: int) -> bytes:
    """Return the exact placeholder byte sequence for ``slot_size`` MiB."""
    if slot_size < MIN_SLOT_SIZE or slot_size % 2 != 0:
        raise InvalidArgumentError(f"invalid slot size {slot_size}")
    total = slot_size * MIB
    interior = (MARKER * (total // len(MARKER)))[: total - 2 * len(DELIMITER)]
    return DELIMITER + interior + DELIMITER


def encode_bundle(app_name: str, script_source: bytes) -> AppBundle:
    """Compress a script at maximum level into an ``AppBundle``.

    The gzip header timestamp is pinned to zero so the same script always
    encodes to the same bytes.
    """
    if not app_name:
        raise InvalidArgumentError("application name must not be empty")
    compressed = gzip.compress(script_source, compresslevel=9, mtime=0)
    return AppBundle(app_name=app_name, compressed_script=compressed)


def default_app_name(script_path: Path) -> str:
    """Derive an application name from the script path.

    ``tool.js`` -> ``tool``; ``myapp/index.js`` -> ``myapp``; otherwise
    ``app_main``.
    """
    if script_path.name != "index.js":
        return script_path.name.split(".")[0]
    if script_path.parent.name:
        return script_path.parent.name
    return "app_main"


def read_bundle(script_path: Path, app_name: str | None = None) -> AppBundle:
    """Read and encode an application script from disk.

    Raises ``BundleReadError`` if the file cannot be read; this is fatal.
    """
    path = Path(script_path).resolve()
    try:
        source = path.read_bytes()
    except OSError as exc:
        raise BundleReadError(f"cannot read application script {path}: {exc}") from exc

    name = app_name or default_app_name(path)
    bundle = encode_bundle(name, source)
    logger.debug(
        "encoded %s as %s: %d source bytes -> %d encoded bytes",
        path,
        name,
        len(source),
        bundle.encoded_length,
    )
    return bundle
