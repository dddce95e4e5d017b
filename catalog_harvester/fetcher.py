"""HTTP GET layer: one shared client, fixed identity header, typed errors.

No retries and no caching happen here. Callers decide what a failure means.
"""

import json
import logging
import threading
from typing import Any, Optional, Sequence

import httpx
from bs4 import BeautifulSoup

from .config import HttpConfig
from .errors import DecodeError, HttpStatusError, NetworkError

logger = logging.getLogger("catalog_harvester")


class Fetcher:
    def __init__(self, config: HttpConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        with self._lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
                    follow_redirects=True,
                    headers={"User-Agent": self.config.user_agent},
                    transport=self._transport,
                )
            return self._client

    def close(self):
        with self._lock:
            if self._client and not self._client.is_closed:
                self._client.close()

    def _get(self, url: str) -> httpx.Response:
        try:
            resp = self.client.get(url)
        except httpx.DecodingError as e:
            raise DecodeError(f"{url}: could not decode response body: {e}") from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            # transport failures, redirect loops, malformed URLs
            raise NetworkError(url, e) from e
        if not resp.is_success:
            raise HttpStatusError(url, resp.status_code)
        return resp

    def get_bytes(self, url: str) -> bytes:
        """Fetch the full response body."""
        return self._get(url).content

    def get_text(self, url: str) -> str:
        return self._get(url).text

    def get_doc(self, url: str) -> BeautifulSoup:
        """Fetch an HTML page and return the parsed document."""
        return BeautifulSoup(self.get_text(url), "html.parser")

    def get_json(self, url: str, path: Sequence[str] = (), expect: Optional[type] = None) -> Any:
        """Fetch JSON and return the value found at ``path``.

        Every key along ``path`` must be present. When ``expect`` is given the
        value found must be an instance of it, e.g. ``list`` for a results array.
        """
        body = self.get_text(url)
        try:
            value = json.loads(body)
        except ValueError as e:
            raise DecodeError(f"{url}: invalid JSON: {e}") from e
        return extract_path(value, path, expect, source=url)


def extract_path(value: Any, path: Sequence[str], expect: Optional[type] = None,
                 source: str = "payload") -> Any:
    walked = []
    for key in path:
        walked.append(key)
        if not isinstance(value, dict) or key not in value:
            raise DecodeError(f"{source}: missing field {'.'.join(walked)}")
        value = value[key]
    if expect is not None and not isinstance(value, expect):
        where = ".".join(walked) or "<root>"
        raise DecodeError(
            f"{source}: field {where} should be {expect.__name__}, got {type(value).__name__}"
        )
    return value
