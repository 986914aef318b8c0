"""HTTP transport — retrying download/upload over ``requests``.

Redirects are followed by hand so that a relative ``Location`` header is
resolved against the URL that produced it, and so every hop is logged.
A download streams into a ``<dest>.partial`` sibling that is renamed onto
the destination only once the body is complete, so an interrupted process
never leaves a truncated file under the final name.

Retries cover connection errors, timeouts and 5xx answers. Any other
status >= 400 fails immediately with ``NonOKResponseError``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import urljoin, urlparse

import requests

from binstamp.core.errors import InvalidArgumentError, NonOKResponseError, TransportError
from binstamp.core.fsutil import mkdirp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CHUNK_SIZE = 1024 * 1024


def _validate_url(url: str) -> None:
    if not url:
        raise InvalidArgumentError(f"Invalid Argument - url [{url}] is undefined or empty!")
    if urlparse(url).scheme not in ("http", "https"):
        raise InvalidArgumentError(f"Invalid Argument - url [{url}] must be http(s)")


class Transport:
    """Blocking HTTP client used for source downloads and artifact transfer.

    Parameters
    ----------
    session:
        ``requests.Session`` (or a compatible object) to issue requests with.
    timeout:
        Per-request timeout in seconds.
    retries:
        Total attempts for retryable failures (minimum 1).
    backoff_seconds:
        Linear backoff base; attempt ``n`` waits ``n * backoff_seconds``.
    max_redirects:
        Redirect hops followed before giving up.
    sleep:
        Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        *,
        session: Any | None = None,
        timeout: float = 60.0,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        max_redirects: int = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout
        self._retries = max(1, retries)
        self._backoff = backoff_seconds
        self._max_redirects = max_redirects
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def download(self, url: str, dest: Path | str) -> Path:
        """Download ``url`` into ``dest`` (parents created) and return the path."""
        _validate_url(url)
        if not dest:
            raise InvalidArgumentError(f"Invalid Argument - file: [{dest}] is undefined or empty!")
        dest = Path(dest)
        partial = dest.with_name(dest.name + ".partial")

        logger.info("downloading %s to %s ...", url, dest)
        try:
            self._with_retries(url, lambda: self._download_once(url, partial))
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        partial.replace(dest)
        return dest

    def upload(
        self,
        url: str,
        file_path: Path,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """POST the content of ``file_path`` to ``url`` as a streamed body."""
        _validate_url(url)
        file_path = Path(file_path)
        if not file_path.is_file():
            raise InvalidArgumentError(f"Invalid Argument - file [{file_path}] must be a file")

        request_headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(file_path.stat().st_size),
            **(headers or {}),
        }
        logger.info("uploading file=%s, url=%s ...", file_path, url)

        def _post() -> None:
            with file_path.open("rb") as body:
                response = self._session.post(
                    url, data=body, headers=request_headers, timeout=self._timeout
                )
            with response:
                if response.status_code >= 400:
                    raise NonOKResponseError(response.status_code, url)
                logger.debug("upload response: %s", response.text)

        self._with_retries(url, _post)

    def exists(self, url: str, headers: Mapping[str, str] | None = None) -> bool:
        """Return ``True`` if ``url`` answers a HEAD request with status < 400."""
        _validate_url(url)

        def _head() -> bool:
            response = self._session.head(
                url, headers=dict(headers or {}), allow_redirects=True, timeout=self._timeout
            )
            with response:
                if response.status_code >= 500:
                    raise NonOKResponseError(response.status_code, url)
                return response.status_code < 400

        return self._with_retries(url, _head)

    def fetch_json(self, url: str, headers: Mapping[str, str] | None = None) -> Any:
        """GET ``url`` and decode the JSON body."""
        _validate_url(url)

        def _get() -> Any:
            response = self._session.get(
                url, headers=dict(headers or {}), allow_redirects=True, timeout=self._timeout
            )
            with response:
                if response.status_code >= 400:
                    raise NonOKResponseError(response.status_code, url)
                return response.json()

        return self._with_retries(url, _get)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _download_once(self, url: str, dest: Path) -> None:
        current = url
        for _ in range(self._max_redirects + 1):
            response = self._session.get(
                current, stream=True, allow_redirects=False, timeout=self._timeout
            )
            with response:
                location = response.headers.get("Location") or response.headers.get("location")
                if 300 <= response.status_code < 400 and location:
                    current = urljoin(current, location)
                    logger.info("following redirect to %s ...", current)
                    continue
                if response.status_code >= 400:
                    raise NonOKResponseError(response.status_code, current)

                mkdirp(dest.parent)
                with dest.open("wb") as out:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            out.write(chunk)
                return
        raise TransportError(f"too many redirects (>{self._max_redirects}) for {url}")

    def _with_retries(self, url: str, operation: Callable[[], T]) -> T:
        for attempt in range(1, self._retries + 1):
            try:
                return operation()
            except NonOKResponseError as exc:
                if exc.status_code < 500 or attempt == self._retries:
                    raise
                reason: str = str(exc)
            except (requests.ConnectionError, requests.Timeout) as exc:
                if attempt == self._retries:
                    raise TransportError(f"request to {url} failed: {exc}") from exc
                reason = str(exc)
            except requests.RequestException as exc:
                raise TransportError(f"request to {url} failed: {exc}") from exc

            delay = self._backoff * attempt
            logger.warning(
                "attempt %d/%d for %s failed (%s); retrying in %.1fs",
                attempt,
                self._retries,
                url,
                reason,
                delay,
            )
            self._sleep(delay)
        raise AssertionError("unreachable")
