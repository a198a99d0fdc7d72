"""HTTP access to the patch server."""

from __future__ import annotations

import logging
import time
from http.client import HTTPException
from pathlib import Path
from typing import Callable, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from patcher.update.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
)
from patcher.update.models import RemoteUnavailableError, UpdateError


_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ChunkCallback = Callable[[int], None]


class PatchServerClient:
    """Fetch documents and payloads from the patch server base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._max_retries = max(0, max_retries)
        self._retry_delay = max(0.0, retry_delay)
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, relative: str) -> str:
        return f"{self._base_url}/{relative.lstrip('/')}"

    def fetch_text(self, url: str, *, encoding: str = "utf-8") -> str:
        """Return the body of ``url`` decoded as text."""

        def _fetch() -> str:
            with self._open(url) as response:
                try:
                    body = response.read()
                except (HTTPException, OSError) as exc:
                    raise RemoteUnavailableError(f"Read error: {exc}", url=url) from exc
            try:
                return body.decode(encoding)
            except UnicodeDecodeError as exc:
                raise UpdateError(f"Response from {url} is not valid {encoding}: {exc}") from exc

        return self._with_retries(url, _fetch)

    def probe_size(self, url: str) -> int:
        """Return the ``Content-Length`` advertised for ``url`` without downloading it."""

        with self._open(url, method="HEAD") as response:
            length = response.headers.get("Content-Length")
        if length is None:
            return 0
        try:
            return max(0, int(length))
        except ValueError:
            return 0

    def download(self, url: str, destination: Path, on_chunk: ChunkCallback | None = None) -> int:
        """Stream ``url`` into ``destination`` and return the number of bytes written.

        A failed attempt never leaves a partial file behind.  Transient failures
        (connection errors and 5xx responses) are retried; client errors are not.
        """

        def _download() -> int:
            written = 0
            try:
                with self._open(url) as response, destination.open("wb") as target:
                    while True:
                        chunk = response.read(self._chunk_size)
                        if not chunk:
                            break
                        target.write(chunk)
                        written += len(chunk)
                        if on_chunk is not None:
                            on_chunk(len(chunk))
            except RemoteUnavailableError:
                _remove_partial(destination)
                raise
            except (HTTPException, OSError) as exc:
                _remove_partial(destination)
                raise RemoteUnavailableError(f"Download error: {exc}", url=url) from exc
            return written

        return self._with_retries(url, _download)

    def _open(self, url: str, *, method: str = "GET"):
        request = Request(url, method=method)
        try:
            response = urlopen(request, timeout=self._timeout)  # nosec - configured patch server
        except HTTPError as exc:
            exc.close()
            raise RemoteUnavailableError(
                f"Request failed (Status: {exc.code})", url=url, status=exc.code
            ) from exc
        except (URLError, HTTPException, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise RemoteUnavailableError(f"Connection error: {reason}", url=url) from exc

        status = getattr(response, "status", 200)
        if not 200 <= status < 300:
            response.close()
            raise RemoteUnavailableError(f"Request failed (Status: {status})", url=url, status=status)
        return response

    def _with_retries(self, url: str, action: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return action()
            except RemoteUnavailableError as exc:
                if not exc.is_transient or attempt >= self._max_retries:
                    raise
                attempt += 1
                _LOGGER.warning(
                    "Transient failure fetching %s (%s); retry %s of %s in %.1fs",
                    url,
                    exc,
                    attempt,
                    self._max_retries,
                    self._retry_delay,
                )
                self._sleep(self._retry_delay)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        _LOGGER.debug("Unable to remove partial download %s", path, exc_info=True)


__all__ = ["ChunkCallback", "PatchServerClient"]
