import logging
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from deltaclip.cache import CacheStore
from deltaclip.descriptor import url_scheme
from deltaclip.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


class Client:
    """Retrieves the base artifact and the patch payload."""

    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def session(self):
        if self._session is None:
            self._session = httpx.Client(
                follow_redirects=True,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._session

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def _stream(self, url: str) -> Iterator[bytes]:
        with self.session.stream("GET", url) as response:
            response.raise_for_status()
            yield from response.iter_bytes()
            expected = response.headers.get("Content-Length")
            if expected is not None and response.num_bytes_downloaded != int(expected):
                raise FetchError(
                    "Transfer ended before the full body was received",
                    {
                        "url": url,
                        "expected": expected,
                        "received": str(response.num_bytes_downloaded),
                    },
                )

    def fetch(
        self,
        source_url: str,
        destination: Path,
        store: CacheStore,
        expected: bytes | None = None,
    ) -> Path:
        """Download `source_url` into `destination`

        The destination is cleared first and only replaced once the whole body
        was received and, when `expected` is given, matches that digest.
        """
        store.clear(destination)
        logger.debug("GET %s -> %s", source_url, destination)
        try:
            return store.atomic_write(
                destination, self._stream(source_url), expected=expected
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(
                f"Failed to download {source_url}: {e}",
                {"url": source_url, "destination": str(destination)},
            ) from e

    def read(self, source: str) -> bytes:
        """Return the full content of an http(s) URL, a file:// URL or a local path"""
        scheme = url_scheme(source)
        if scheme in ("http", "https"):
            try:
                response = self.session.get(source)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise FetchError(f"Failed to read {source}: {e}", {"url": source}) from e
            return response.content
        path = Path(source)
        if scheme == "file":
            try:
                path = Path(url2pathname(urlparse(source).path))
            except ValueError as e:
                raise FetchError(f"Invalid URL {source}", {"url": source}) from e
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchError(f"Failed to read {path}", {"path": str(path)}) from e
