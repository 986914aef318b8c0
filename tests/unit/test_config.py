"""Tests for StampSettings — env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from binstamp import __version__
from binstamp.config import StampSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_TOKEN", "BINSTAMP_GITHUB_TOKEN", "BINSTAMP_WORKDIR", "BINSTAMP_PATCH_DIR"):
        monkeypatch.delenv(name, raising=False)


class TestStampSettings:
    def test_defaults(self):
        config = StampSettings(_env_file=None)
        assert config.workdir == Path(".")
        assert config.source_base_url == "https://nodejs.org/dist"
        assert config.build_version == "v1"
        assert config.release_tag == f"v{__version__}"
        assert config.github_token == ""

    def test_derived_paths(self, tmp_path: Path):
        config = StampSettings(_env_file=None, workdir=tmp_path)
        assert config.build_dir == tmp_path / "build"
        assert config.cache_dir == tmp_path / "cache"
        assert config.resolved_patch_dir == tmp_path / "patches"

    def test_explicit_patch_dir(self, tmp_path: Path):
        config = StampSettings(_env_file=None, patch_dir=tmp_path / "p")
        assert config.resolved_patch_dir == tmp_path / "p"

    def test_release_urls(self):
        config = StampSettings(_env_file=None, release_repo="acme/rt", release_tag="v2")
        assert config.release_download_url == "https://github.com/acme/rt/releases/download/v2"
        assert config.release_api_url == "https://api.github.com/repos/acme/rt/releases/tags/v2"

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("BINSTAMP_WORKDIR", str(tmp_path))
        monkeypatch.setenv("BINSTAMP_HTTP_RETRIES", "5")
        config = StampSettings(_env_file=None)
        assert config.workdir == tmp_path
        assert config.http_retries == 5

    def test_conventional_github_token(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")
        assert StampSettings(_env_file=None).github_token == "ghp_example"
