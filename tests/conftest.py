from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from tvcatalog.errors import UpstreamUnavailable
from tvcatalog.models import ProgramEntry, RawEntry

FIXTURE_DIR = Path(__file__).parent / "fixtures"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.encoding: Optional[str] = "utf-8"
        self.closed = False

    def json(self) -> Any:
        return json.loads(self.text)

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Routes ``get`` calls by the ``action`` query parameter (or by URL)."""

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = routes
        self.calls: List[Tuple[str, Dict[str, str], Optional[float]]] = []

    def get(self, url: str, params: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> FakeResponse:
        params = dict(params or {})
        self.calls.append((url, params, timeout))
        route = self.routes.get(params.get("action", url))
        if isinstance(route, BaseException):
            raise route
        if isinstance(route, FakeResponse):
            return route
        if route is None:
            return FakeResponse(404, "not found")
        return FakeResponse(200, route)


class FakeProvider:
    """In-memory provider; ``responses`` are returned (or raised) in order."""

    guide_text_base64 = False

    def __init__(self, entries: Optional[List[RawEntry]] = None, delay: float = 0.0) -> None:
        self.entries = list(entries or [])
        self.delay = delay
        self.failures: List[BaseException] = []
        self.programs: Dict[str, List[ProgramEntry]] = {}
        self.guide_error: Optional[BaseException] = None
        self.calls = 0
        self._lock = threading.Lock()

    def fetch_live_streams(self) -> List[RawEntry]:
        with self._lock:
            self.calls += 1
            failure = self.failures.pop(0) if self.failures else None
        if self.delay:
            time.sleep(self.delay)
        if failure is not None:
            raise failure
        return list(self.entries)

    def fetch_categories(self) -> Dict[str, str]:
        return {}

    def fetch_short_epg(self, source_id: str) -> List[ProgramEntry]:
        if self.guide_error is not None:
            raise self.guide_error
        return list(self.programs.get(source_id, []))


class FakeClock:
    def __init__(self, start: float = 1_768_471_200.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    def __init__(self) -> None:
        self.store: Dict[str, Any] = {}
        self.expiry: Dict[str, int] = {}
        self.fail_with: Optional[BaseException] = None

    def get(self, name: str) -> Any:
        if self.fail_with is not None:
            raise self.fail_with
        return self.store.get(name)

    def set(self, name: str, value: Any, ex: Optional[int] = None) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.store[name] = value.encode("utf-8") if isinstance(value, str) else value
        if ex is not None:
            self.expiry[name] = ex
        return True


def entry(source_id: str, name: str, logo: Optional[str] = None, category: str = "Live TV") -> RawEntry:
    return RawEntry(
        source_id=source_id,
        raw_name=name,
        stream_url=f"http://streams.example/live/{source_id}.m3u8",
        logo_url=logo,
        category_label=category,
    )


def fixture_text(name: str) -> str:
    return (FIXTURE_DIR / name).read_text(encoding="utf-8")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sample_entries() -> List[RawEntry]:
    return [
        entry("101", "RO|4K| Pro TV", logo="https://logos.example/protv.png", category="Romania"),
        entry("102", "Pro TV HD", category="Romania"),
        entry("201", "UK| Sky Sports Main Event FHD", category="UK Sports"),
    ]


@pytest.fixture()
def failing() -> UpstreamUnavailable:
    return UpstreamUnavailable("connection refused")
