"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and BINSTAMP_* environment variables. The GitHub
token used for publishing is also accepted from the conventional
GITHUB_TOKEN variable.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from binstamp import __version__


class StampSettings(BaseSettings):
    """Settings shared by the build pipeline, the stamper and the CLI.

    Examples
    --------
    Override via environment::

        export BINSTAMP_WORKDIR=/var/tmp/binstamp
        export BINSTAMP_LOG_LEVEL=DEBUG
        export GITHUB_TOKEN=ghp_xxx
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BINSTAMP_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Working directory holding build/ and cache/
    workdir: Path = Path(".")
    log_level: str = "INFO"

    # Upstream runtime source
    source_base_url: str = "https://nodejs.org/dist"
    default_runtime_versions: list[str] = ["10.16.0"]

    # Remote artifact store (GitHub releases)
    release_repo: str = "binstamp/binstamp"
    release_tag: str = f"v{__version__}"
    github_api_url: str = "https://api.github.com"
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("BINSTAMP_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )

    # Build layout and toolchain
    build_version: str = "v1"
    patch_dir: Path | None = None  # defaults to <workdir>/patches
    builder_image: str = "binstamp/node-builder"
    builder_image_version: int = 3
    builder_setup: str = "source /opt/rh/devtoolset-10/enable"

    # HTTP transport
    http_timeout: float = 60.0
    http_retries: int = 3
    http_backoff_seconds: float = 2.0

    @property
    def build_dir(self) -> Path:
        return self.workdir / "build"

    @property
    def cache_dir(self) -> Path:
        return self.workdir / "cache"

    @property
    def resolved_patch_dir(self) -> Path:
        """Directory holding per-version patch folders."""
        return self.patch_dir if self.patch_dir is not None else self.workdir / "patches"

    @property
    def release_download_url(self) -> str:
        return f"https://github.com/{self.release_repo}/releases/download/{self.release_tag}"

    @property
    def release_api_url(self) -> str:
        return f"{self.github_api_url}/repos/{self.release_repo}/releases/tags/{self.release_tag}"


# Module-level singleton, import as `from binstamp.config import settings`
settings = StampSettings()
