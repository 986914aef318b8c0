"""Artifact naming, local cache and remote release store.

Artifact name layout::

    <platform>-<arch>-<runtimeVersion>-<buildVersion>-<slot>MB
    e.g. linux-x64-10.16.0-v1-4MB, linux-ptrc-arm64-18.17.1-v1-2MB

The name is the only key used for both local cache lookup and remote
resolution. Two compiled artifacts are interchangeable iff their names match.
Local layout: ``{cache_dir}/{name}`` (flat, one file per artifact).
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from urllib.parse import quote

from binstamp.bridge.transport import Transport
from binstamp.core.errors import ArtifactNotFoundError, InvalidArgumentError, TransportError
from binstamp.core.fsutil import mkdirp
from binstamp.models.artifacts import CachedArtifact

logger = logging.getLogger(__name__)


def build_artifact_name(
    platform: str,
    arch: str,
    runtime_version: str,
    build_version: str,
    slot_size: int,
) -> str:
    """Return the canonical artifact name for a compiled runtime."""
    for label, value in (
        ("platform", platform),
        ("arch", arch),
        ("runtime_version", runtime_version),
        ("build_version", build_version),
    ):
        if not value or "/" in value:
            raise InvalidArgumentError(f"invalid {label} for artifact name: {value!r}")
    if slot_size <= 0:
        raise InvalidArgumentError(f"invalid slot size for artifact name: {slot_size}")
    return f"{platform}-{arch}-{runtime_version}-{build_version}-{slot_size}MB"


class RemoteArtifactStore:
    """GitHub-release backed artifact store.

    Parameters
    ----------
    transport:
        HTTP transport used for every request.
    download_base_url:
        ``https://github.com/<repo>/releases/download/<tag>``.
    release_api_url:
        ``https://api.github.com/repos/<repo>/releases/tags/<tag>``; used to
        resolve the upload URL when publishing.
    token:
        GitHub token for authenticated publishing.
    """

    def __init__(
        self,
        transport: Transport,
        download_base_url: str,
        release_api_url: str,
        token: str = "",
    ) -> None:
        self._transport = transport
        self._download_base = download_base_url.rstrip("/")
        self._release_api_url = release_api_url
        self._token = token

    def url_for(self, name: str) -> str:
        return f"{self._download_base}/{name}"

    def exists(self, name: str) -> bool:
        return self._transport.exists(self.url_for(name))

    def download(self, name: str, dest: Path) -> Path:
        return self._transport.download(self.url_for(name), dest)

    def publish(self, name: str, file_path: Path) -> None:
        """Upload ``file_path`` as release asset ``name``."""
        if not self._token:
            raise InvalidArgumentError("publishing requires a GitHub token (GITHUB_TOKEN)")
        headers = {"Authorization": f"token {self._token}"}
        release = self._transport.fetch_json(self._release_api_url, headers)
        upload_url = str(release.get("upload_url") or "")
        if not upload_url:
            raise TransportError(f"release at {self._release_api_url} has no upload_url")
        url = f"{upload_url.split('{')[0]}?name={quote(name)}"
        self._transport.upload(url, file_path, headers)


class ArtifactCache:
    """Flat directory of compiled runtime artifacts, keyed by artifact name.

    A local hit short-circuits any remote download.

    Parameters
    ----------
    cache_dir:
        Root directory for cached artifacts (created lazily).
    remote:
        Optional remote store consulted on a local miss.
    """

    def __init__(self, cache_dir: Path, remote: RemoteArtifactStore | None = None) -> None:
        self._dir = Path(cache_dir)
        self._remote = remote

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, name: str) -> Path:
        return self._dir / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def store(self, name: str, source_file: Path) -> Path:
        """Copy a compiled executable into the cache; existing entries are kept."""
        target = self.path_for(name)
        if target.is_file():
            logger.info("artifact %s already cached, keeping it", name)
            return target
        mkdirp(self._dir)
        tmp = target.with_name(target.name + ".partial")
        shutil.copy2(source_file, tmp)
        tmp.replace(target)
        logger.info("cached artifact %s", target)
        return target

    def resolve(self, name: str, slot_size: int) -> CachedArtifact:
        """Return the local artifact, downloading it from the remote on a miss."""
        target = self.path_for(name)
        if target.is_file():
            logger.info("build name=%s already downloaded, using it", name)
            return CachedArtifact(name=name, path=target, slot_size=slot_size)
        if self._remote is None:
            raise ArtifactNotFoundError(f"artifact {name} is not cached in {self._dir}")
        self._remote.download(name, target)
        return CachedArtifact(name=name, path=target, slot_size=slot_size, downloaded=True)

    def evict(self, name: str) -> bool:
        target = self.path_for(name)
        if not target.exists():
            return False
        target.unlink()
        return True
