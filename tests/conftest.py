"""Shared fixtures and the strict test-accounting guard.

The fixtures serve a fake website through httpx.MockTransport and replace
crawl4ai's browser with an in-memory stand-in, so no test touches the network.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

import sitemirror.fetch as fetch_module
import sitemirror.site as site_module

Body = Union[str, bytes]

_ACCOUNTING: Counter = Counter()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING["deselected"] += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return
    if getattr(report, "wasxfail", False):
        _ACCOUNTING["xfailed" if report.skipped else "xpassed"] += 1
    elif report.skipped:
        _ACCOUNTING["skipped"] += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [f"{kind}={count}" for kind, count in sorted(_ACCOUNTING.items())]
    if not violations:
        return
    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=", f"Strict guard failed: {', '.join(violations)} (must all be zero)"
        )
    session.exitstatus = 1


@dataclass
class FakeSite:
    """Serve canned responses keyed by absolute URL and record every request."""

    routes: Dict[str, Tuple[int, str, Body]] = field(default_factory=dict)
    errors: Dict[str, Callable[[httpx.Request], Exception]] = field(
        default_factory=dict
    )
    redirects: Dict[str, Tuple[int, str]] = field(default_factory=dict)
    requests: List[str] = field(default_factory=list)

    def page(self, url: str, html: str, status: int = 200) -> None:
        self.routes[url] = (status, "text/html; charset=utf-8", html)

    def asset(
        self,
        url: str,
        body: Body = b"asset-bytes",
        content_type: str = "application/octet-stream",
        status: int = 200,
    ) -> None:
        self.routes[url] = (status, content_type, body)

    def redirect(self, url: str, location: str, status: int = 301) -> None:
        self.redirects[url] = (status, location)

    def fail(self, url: str, error: Callable[[httpx.Request], Exception]) -> None:
        self.errors[url] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.errors:
            raise self.errors[url](request)
        if url in self.redirects:
            status, location = self.redirects[url]
            return httpx.Response(status, headers={"location": location})
        if url not in self.routes:
            return httpx.Response(404, headers={"content-type": "text/plain"}, content=b"")
        status, content_type, body = self.routes[url]
        content = body.encode("utf-8") if isinstance(body, str) else body
        return httpx.Response(
            status, headers={"content-type": content_type}, content=content
        )

    def client(self, options=None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), follow_redirects=True
        )

    def count(self, url: str) -> int:
        return self.requests.count(url)


class _FakeCrawler:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser

    async def __aenter__(self):
        self.browser.opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.browser.closed += 1
        return False

    async def arun(self, url, config=None):
        self.browser.rendered.append(url)
        if self.browser.crash:
            raise RuntimeError("browser crashed")
        html = self.browser.pages.get(url)
        if html is None:
            return [SimpleNamespace(success=False, html="", error_message="net::ERR_FAILED")]
        return [SimpleNamespace(success=True, html=html, error_message=None)]


@dataclass
class FakeBrowser:
    """Stand-in for crawl4ai's AsyncWebCrawler."""

    pages: Dict[str, str] = field(default_factory=dict)
    rendered: List[str] = field(default_factory=list)
    crash: bool = False
    opened: int = 0
    closed: int = 0
    configs: List[object] = field(default_factory=list)

    def __call__(self, config: Optional[object] = None) -> _FakeCrawler:
        self.configs.append(config)
        return _FakeCrawler(self)


@pytest.fixture
def fake_site(monkeypatch: pytest.MonkeyPatch) -> FakeSite:
    site = FakeSite()
    monkeypatch.setattr(site_module, "build_http_client", site.client)
    return site


@pytest.fixture
def fake_browser(monkeypatch: pytest.MonkeyPatch) -> FakeBrowser:
    browser = FakeBrowser()
    monkeypatch.setattr(fetch_module, "AsyncWebCrawler", browser)
    return browser
