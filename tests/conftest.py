"""Shared fixtures: an offline Fetcher backed by ``httpx.MockTransport``."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest

from catalog_harvester.cache import ArtifactCache
from catalog_harvester.config import AppConfig, BuildConfig, HttpConfig
from catalog_harvester.downloader import Downloader
from catalog_harvester.fetcher import Fetcher

Route = Union[Tuple[int, Union[bytes, str]], Callable[[httpx.Request], httpx.Response]]


class Routes:
    """URL -> canned response table that records every request it serves."""

    def __init__(self, table: Dict[str, Route] | None = None) -> None:
        self.table: Dict[str, Route] = dict(table or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.calls.append(url)
        route = None
        for candidate in (url, url.rstrip("/"), url + "/"):
            if candidate in self.table:
                route = self.table[candidate]
                break
        if route is None:
            return httpx.Response(404, request=request)
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, str):
            body = body.encode("utf-8")
        return httpx.Response(status, content=body, request=request)


@pytest.fixture
def routes() -> Routes:
    return Routes()


@pytest.fixture
def fetcher(routes: Routes):
    f = Fetcher(HttpConfig(timeout=5, connect_timeout=5), transport=httpx.MockTransport(routes))
    yield f
    f.close()


@pytest.fixture
def cache(tmp_path) -> ArtifactCache:
    return ArtifactCache(str(tmp_path))


@pytest.fixture
def downloader(fetcher: Fetcher, cache: ArtifactCache) -> Downloader:
    return Downloader(fetcher, cache)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        data_dir=str(tmp_path),
        log_dir=str(tmp_path / "logs"),
        http=HttpConfig(timeout=5, connect_timeout=5),
        build=BuildConfig(workers=1),
    )


class RecordingProgress:
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def start(self, total, label):
        self.events.append(("start", total, label))

    def increment(self):
        self.events.append(("increment",))

    def finish(self):
        self.events.append(("finish",))

    @property
    def increments(self) -> int:
        return sum(1 for e in self.events if e[0] == "increment")
