"""Payload and artifact models."""

from __future__ import annotations

import base64
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class AppBundle(BaseModel):
    """An application ready to be written into a placeholder slot.

    ``compressed_script`` holds the gzip bytes of the script source; the
    wire form produced by :meth:`encode` is
    ``base64(app_name) + "\\n" + base64(compressed_script)``.
    """

    model_config = ConfigDict(frozen=True)

    app_name: str
    compressed_script: bytes

    def encode(self) -> bytes:
        name = base64.b64encode(self.app_name.encode("utf-8"))
        body = base64.b64encode(self.compressed_script)
        return name + b"\n" + body

    @property
    def encoded_length(self) -> int:
        return len(self.encode())


class CachedArtifact(BaseModel):
    """A compiled runtime executable located on disk under its artifact name."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    slot_size: int
    downloaded: bool = False  # fetched from the remote store during this call


class StampResult(BaseModel):
    """Outcome of stamping one application into one artifact."""

    model_config = ConfigDict(frozen=True)

    output_path: Path
    artifact_name: str
    slot_size: int
    offset: int
    bundle_length: int
