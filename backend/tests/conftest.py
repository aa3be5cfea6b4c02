"""
Pytest configuration and shared fixtures for merge-sub tests.

Provides:
- Diagnostic event capture (observer fixture)
- Proxy-link builders for vmess/vless lines
- httpx.MockTransport based subscription hosts
- A FastAPI TestClient wired to an in-memory store
"""

import base64
import json
import logging
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from mergesub.api.deps import get_http_client, get_settings, get_store
from mergesub.core.config import Settings
from mergesub.main import app
from mergesub.services.diagnostics import DiagnosticEvent
from mergesub.services.store import MemoryStore

# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Diagnostics
# ============================================================================


@pytest.fixture
def events() -> list[DiagnosticEvent]:
    return []


@pytest.fixture
def observer(events: list[DiagnosticEvent]) -> Callable[[DiagnosticEvent], None]:
    return events.append


# ============================================================================
# Proxy Link Builders
# ============================================================================


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def make_vmess() -> Callable[..., str]:
    """Build a vmess:// line from a default ws+tls record."""

    def _make(**fields: Any) -> str:
        record = {
            "v": "2",
            "ps": "node-1",
            "add": "origin.example.com",
            "port": "443",
            "id": "b831381d-6324-4d53-ad4f-8cda48b30811",
            "aid": "0",
            "net": "ws",
            "type": "none",
            "host": "",
            "path": "/ws",
            "tls": "tls",
        }
        record.update(fields)
        return "vmess://" + b64(json.dumps(record))

    return _make


@pytest.fixture
def decode_vmess() -> Callable[[str], dict]:
    def _decode(line: str) -> dict:
        assert line.startswith("vmess://")
        return json.loads(base64.b64decode(line[len("vmess://"):]).decode("utf-8"))

    return _decode


# ============================================================================
# Mock Subscription Hosts
# ============================================================================


def _mock_handler(routes: dict[str, Any], seen: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        entry = routes.get(str(request.url))
        if isinstance(entry, type) and issubclass(entry, Exception):
            raise entry("mock failure", request=request)
        if entry is None:
            return httpx.Response(404, text="not found")
        if isinstance(entry, tuple):
            status, text = entry
            return httpx.Response(status, text=text)
        return httpx.Response(200, text=entry)

    return handler


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.fixture
def mock_client(requests_seen: list[httpx.Request]) -> Callable[[dict[str, Any]], httpx.AsyncClient]:
    """Factory for an AsyncClient backed by url -> body / (status, body) / exception class."""

    def _make(routes: dict[str, Any]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(_mock_handler(routes, requests_seen)))

    return _make


# ============================================================================
# FastAPI App
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD="secret",
        SUB_TOKEN="tok123",
        CFIP="",
        CFPORT="",
        REDIS_URL="",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def remote_routes() -> dict[str, Any]:
    """Subscription hosts served to the app; tests mutate this before requesting."""
    return {}


@pytest.fixture
def test_client(
    test_settings: Settings,
    memory_store: MemoryStore,
    remote_routes: dict[str, Any],
    requests_seen: list[httpx.Request],
):
    async def _client():
        transport = httpx.MockTransport(_mock_handler(remote_routes, requests_seen))
        async with httpx.AsyncClient(transport=transport) as client:
            yield client

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_http_client] = _client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth() -> tuple[str, str]:
    return ("admin", "secret")
