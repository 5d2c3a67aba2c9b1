"""
Pytest configuration.

Live test URLs are loaded from environment variables for privacy.
Locally, add them to your .env file. For CI/CD, configure GitHub Secrets.
Offline tests replace the upstream with FakeUpstream.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from dotenv import load_dotenv

from embedflow.extractors.base import ExtractorError
from embedflow.extractors import base
from embedflow.utils import cache_utils, key_provider
from embedflow.utils.http_utils import DownloadError

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture
def get_test_url():
    """
    Factory fixture that returns a function to get test URLs from environment.

    Usage:
        def test_something(get_test_url):
            url = get_test_url("VideoStr")
            if url is None:
                pytest.skip("TEST_URL_VIDEOSTR not set")
    """

    def _get_url(extractor_name: str) -> str | None:
        env_var = f"TEST_URL_{extractor_name.upper()}"
        return os.environ.get(env_var)

    return _get_url


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Every test starts with an empty response cache and a fresh key provider."""
    monkeypatch.setattr(cache_utils, "_response_cache", None)
    monkeypatch.setattr(key_provider, "_key_provider", None)


class FakeUpstream:
    """Stand-in for BaseExtractor._make_request serving canned responses by URL."""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Optional[dict], Optional[dict]]] = []

    def add(self, url: str, *, text: str | None = None, json_data: Any = None, status: int = 200):
        if json_data is not None:
            self.routes[url] = (status, {"json": json_data})
        else:
            self.routes[url] = (status, {"text": text or ""})

    def called(self, url: str) -> bool:
        return any(call[0] == url for call in self.calls)

    async def request(self, url: str, method: str = "GET", headers: dict | None = None, params: dict | None = None, **kwargs):
        self.calls.append((url, params, headers))
        if url not in self.routes:
            raise ExtractorError(f"Request failed for URL {url}: connection refused")
        status, body = self.routes[url]
        if status >= 400:
            raise DownloadError(status, f"HTTP error {status} while requesting {url}")
        return httpx.Response(status, request=httpx.Request(method, url, params=params), **body)


class StaticKeyProvider:
    """Key provider returning a fixed secret and counting lookups."""

    def __init__(self, secret: str | None):
        self.secret = secret
        self.lookups = 0

    async def get_secret(self, field_names=None, headers=None):
        self.lookups += 1
        return self.secret


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def make_key_provider():
    return StaticKeyProvider


class MockHTTP:
    """Serves httpx clients backed by httpx.MockTransport and records what they send."""

    def __init__(self):
        self.handler = lambda request: httpx.Response(200)
        self.requests: List[httpx.Request] = []
        self.client_kwargs: List[Dict[str, Any]] = []

    def respond(self, handler):
        self.handler = handler

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self, follow_redirects: bool = True, **kwargs) -> httpx.AsyncClient:
        self.client_kwargs.append(kwargs)
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self._handle), follow_redirects=follow_redirects, **kwargs
        )


@pytest.fixture
def mock_http(monkeypatch):
    """Route extractor and key-document traffic through an in-process transport."""
    mock = MockHTTP()
    monkeypatch.setattr(base, "create_httpx_client", mock.client)
    monkeypatch.setattr(key_provider, "create_httpx_client", mock.client)
    return mock
