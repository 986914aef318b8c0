"""Tests for the binary stamping fast path."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from binstamp.core.artifact_cache import ArtifactCache, RemoteArtifactStore
from binstamp.core.errors import (
    AmbiguousPlaceholderError,
    InvalidArgumentError,
    PlaceholderNotFoundError,
)
from binstamp.core.placeholder import encode_bundle, generate_placeholder
from binstamp.core.stamper import find_placeholder, stamp_application, stamp_file, stamp_image

HEAD = b"\x7fELF-runtime-prefix" * 100
TAIL = b"-runtime-suffix\x00" * 100


def fake_runtime(slot_size: int) -> bytes:
    return HEAD + generate_placeholder(slot_size) + TAIL


class TestFindPlaceholder:
    def test_single_match(self):
        image = fake_runtime(2)
        assert find_placeholder(image, generate_placeholder(2)) == len(HEAD)

    def test_no_match(self):
        with pytest.raises(PlaceholderNotFoundError):
            find_placeholder(HEAD + TAIL, generate_placeholder(2))

    def test_two_matches(self):
        placeholder = generate_placeholder(2)
        with pytest.raises(AmbiguousPlaceholderError):
            find_placeholder(HEAD + placeholder + placeholder + TAIL, placeholder)


class TestStampImage:
    def test_payload_then_zeros(self):
        image = bytearray(fake_runtime(2))
        payload = encode_bundle("app", b"console.log(1)").encode()
        offset = stamp_image(image, payload, 2)

        slot_end = offset + 2 * 1024 * 1024
        assert offset == len(HEAD)
        assert bytes(image[offset : offset + len(payload)]) == payload
        assert set(image[offset + len(payload) : slot_end]) == {0}
        assert bytes(image[:offset]) == HEAD
        assert bytes(image[slot_end:]) == TAIL

    def test_payload_too_large(self):
        image = bytearray(fake_runtime(2))
        with pytest.raises(InvalidArgumentError):
            stamp_image(image, b"x" * (2 * 1024 * 1024), 2)


class TestStampFile:
    def test_writes_executable(self, tmp_path: Path):
        artifact = tmp_path / "linux-x64-10.16.0-v1-2MB"
        artifact.write_bytes(fake_runtime(2))
        output = tmp_path / "out" / "app"

        result = stamp_file(artifact, encode_bundle("app", b"1"), output)

        assert result.slot_size == 2
        assert result.offset == len(HEAD)
        assert output.is_file()
        assert os.stat(output).st_mode & stat.S_IXUSR
        assert artifact.read_bytes() == fake_runtime(2)

    def test_wrong_size_class(self, tmp_path: Path):
        artifact = tmp_path / "linux-x64-10.16.0-v1-2MB"
        artifact.write_bytes(fake_runtime(2))
        with pytest.raises(PlaceholderNotFoundError, match="4MB placeholder"):
            stamp_file(artifact, encode_bundle("app", b"1"), tmp_path / "app", slot_size=4)


class TestStampApplication:
    def test_from_local_cache(self, tmp_path: Path):
        script = tmp_path / "tool.js"
        script.write_text("console.log('tool')\n")
        cache = ArtifactCache(tmp_path / "cache")
        (tmp_path / "cache").mkdir()
        cache.path_for("linux-x64-10.16.0-v1-2MB").write_bytes(fake_runtime(2))

        result = stamp_application(
            script,
            cache=cache,
            runtime_version="10.16.0",
            platform="linux",
            arch="x64",
            output_path=tmp_path / "dist" / "tool",
        )
        assert result.artifact_name == "linux-x64-10.16.0-v1-2MB"
        assert (tmp_path / "dist" / "tool").is_file()
        assert cache.exists("linux-x64-10.16.0-v1-2MB")

    def test_downloaded_artifact_removed_unless_kept(
        self, tmp_path: Path, transport, session, make_response
    ):
        base = "https://github.com/acme/runtimes/releases/download/v1"
        session.add(
            "GET", f"{base}/linux-x64-10.16.0-v1-2MB", make_response(200, body=fake_runtime(2))
        )
        remote = RemoteArtifactStore(transport, base, "https://api.example.org/r")
        cache = ArtifactCache(tmp_path / "cache", remote)
        script = tmp_path / "tool.js"
        script.write_text("1")

        stamp_application(
            script,
            cache=cache,
            runtime_version="10.16.0",
            platform="linux",
            arch="x64",
            output_path=tmp_path / "a",
        )
        assert not cache.exists("linux-x64-10.16.0-v1-2MB")

        stamp_application(
            script,
            cache=cache,
            runtime_version="10.16.0",
            platform="linux",
            arch="x64",
            output_path=tmp_path / "b",
            keep_artifact=True,
        )
        assert cache.exists("linux-x64-10.16.0-v1-2MB")

    def test_default_output_name(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        script = tmp_path / "tool.js"
        script.write_text("1")
        cache = ArtifactCache(tmp_path / "cache")
        (tmp_path / "cache").mkdir()
        cache.path_for("darwin-arm64-18.0.0-v1-2MB").write_bytes(fake_runtime(2))

        result = stamp_application(
            script, cache=cache, runtime_version="18.0.0", platform="darwin", arch="arm64"
        )
        assert result.output_path == (tmp_path / "app-darwin-arm64-18.0.0").resolve()
