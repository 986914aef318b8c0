"""Shared test fixtures for binstamp."""

from __future__ import annotations

import io
import json
import tarfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
import requests

from binstamp.bridge.transport import Transport
from binstamp.config import StampSettings
from binstamp.core.errors import ProcessExitError
from binstamp.models.host import HostEnvironment


# ---------------------------------------------------------------------------
# Process runner fake
# ---------------------------------------------------------------------------


class FakeRunner:
    """Records commands instead of running them.

    ``handlers`` maps a command name to either an exit code or a callable
    ``(args, cwd, env) -> int`` that may also touch the file system.
    ``captures`` maps a command name to the stdout returned by ``capture``.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.handlers: dict[str, int | Callable[..., int]] = {}
        self.captures: dict[str, str | None] = {}

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        check: bool = True,
    ) -> int:
        self.calls.append({"command": command, "args": list(args), "cwd": cwd, "env": env})
        handler = self.handlers.get(command, 0)
        code = handler(list(args), cwd, env) if callable(handler) else handler
        if check and code != 0:
            raise ProcessExitError(command, args, code)
        return code

    def capture(self, command: str, args: Sequence[str], *, cwd: Path | None = None) -> str | None:
        self.calls.append({"command": command, "args": list(args), "cwd": cwd, "env": None})
        return self.captures.get(command)

    def commands(self) -> list[str]:
        return [call["command"] for call in self.calls]


# ---------------------------------------------------------------------------
# HTTP session fake
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        body: bytes = b"",
        headers: dict[str, str] | None = None,
        json_data: Any = None,
        fail_after: int | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self._json = json_data
        self._fail_after = fail_after
        self.closed = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", "replace")

    def json(self) -> Any:
        if self._json is not None:
            return self._json
        return json.loads(self.body)

    def iter_content(self, chunk_size: int = 1) -> Any:
        for index, start in enumerate(range(0, len(self.body), chunk_size)):
            if self._fail_after is not None and index >= self._fail_after:
                raise requests.ConnectionError("connection reset mid-body")
            yield self.body[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class FakeSession:
    """Serves queued responses per (method, url); records every request.

    A queued value may be a ``FakeResponse`` or an exception instance to raise.
    The last queued item for a key is reused once the queue runs dry.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, url: str, *responses: Any) -> None:
        self.routes.setdefault((method.upper(), url), []).extend(responses)

    def _serve(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        record = {"method": method, "url": url, **kwargs}
        if method == "POST" and kwargs.get("data") is not None:
            record["body"] = kwargs["data"].read()
        self.requests.append(record)
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(status_code=404)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._serve("GET", url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._serve("HEAD", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._serve("POST", url, **kwargs)

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def transport(session: FakeSession, sleeps: list[float]) -> Transport:
    """Transport over the fake session; backoff sleeps are recorded, not slept."""
    return Transport(session=session, retries=3, backoff_seconds=1.0, sleep=sleeps.append)


@pytest.fixture
def make_host(tmp_path: Path) -> Callable[..., HostEnvironment]:
    def _factory(platform: str = "linux", arch: str = "x64", **overrides: Any) -> HostEnvironment:
        defaults: dict[str, Any] = {
            "cwd": tmp_path,
            "env": {"PATH": "/usr/bin:/bin"},
            "platform": platform,
            "arch": arch,
            "cpu_count": 4,
        }
        defaults.update(overrides)
        return HostEnvironment(**defaults)

    return _factory


@pytest.fixture
def linux_host(make_host: Callable[..., HostEnvironment]) -> HostEnvironment:
    return make_host()


@pytest.fixture
def settings(tmp_path: Path) -> StampSettings:
    """Settings rooted in a temporary working directory."""
    return StampSettings(
        workdir=tmp_path / "work",
        source_base_url="https://dist.example.org/dist",
        release_repo="acme/runtimes",
        release_tag="v9.9.9",
        github_api_url="https://api.example.org",
        github_token="",
        http_retries=3,
    )


@pytest.fixture
def make_source_tarball() -> Callable[..., bytes]:
    """Factory fixture: a tiny ``node-v<V>`` source tarball as gzip bytes."""

    def _factory(version: str = "10.16.0", with_configure: bool = True) -> bytes:
        files = {
            "node.gyp": (
                "{\n  'variables': {\n    'library_files': [\n"
                "      'lib/internal/bootstrap/node.js',\n    ],\n  },\n}\n"
            ),
            "lib/internal/bootstrap/node.js": "// bootstrap\n",
        }
        if with_configure:
            files["configure"] = "#!/bin/sh\n"
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for relpath, text in files.items():
                data = text.encode("utf-8")
                info = tarfile.TarInfo(f"node-v{version}/{relpath}")
                info.size = len(data)
                info.mode = 0o755 if relpath == "configure" else 0o644
                tar.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    return _factory
