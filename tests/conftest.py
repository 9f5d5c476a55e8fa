"""
Pytest configuration and shared fixtures for GetStocks Relay tests.
"""

import json
import os
import tempfile
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from config import Config
from services.getstocks import AsyncGetStocksClient


BASE_URL = "https://getstocks.test"


@pytest.fixture
def temp_db_path():
    """Create a temporary database file for testing."""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    if os.path.exists(db_path):
        os.remove(db_path)


@pytest.fixture
def sample_links():
    """Sample links for testing."""
    return {
        "freepik": "https://www.freepik.com/free-photo/mountain-lake_123456.htm",
        "shutterstock": "https://www.shutterstock.com/image-photo/sunset-987654",
        "envato": "https://elements.envato.com/hand-drawn-icons-ABCDEF",
        "invalid": "not-a-link",
    }


@pytest.fixture
def config(temp_db_path):
    """Configuration built directly, without touching the environment."""
    return Config(
        telegram_token="123456:TEST",
        getstocks_token="getstocks-token",
        getstocks_base_url=BASE_URL,
        db_path=temp_db_path,
    )


def envelope(result):
    """Successful provider envelope."""
    return {"status": 200, "result": result}


def read_form(request: httpx.Request) -> dict:
    """Decode a form-encoded request body into a flat dict."""
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


class FakeProvider:
    """
    Scripted provider behind an httpx.MockTransport.

    Responses are queued per path; the last queued response for a path
    repeats once the queue runs dry. Every request is recorded.
    """

    def __init__(self):
        self.responses = {}
        self.requests = []

    def queue(self, path, *payloads):
        self.responses.setdefault(path, []).extend(payloads)
        return self

    def calls(self, path):
        return [request for request in self.requests if request.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.responses.get(request.url.path)
        if not queued:
            return httpx.Response(404, json={"status": 404, "message": "Not found"})
        payload = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(payload, httpx.Response):
            return payload
        if isinstance(payload, Exception):
            raise payload
        return httpx.Response(200, content=json.dumps(payload))

    def client(self, token="getstocks-token"):
        return AsyncGetStocksClient(
            token=token,
            base_url=BASE_URL,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def provider():
    """Scripted provider."""
    return FakeProvider()


@pytest_asyncio.fixture
async def provider_client(provider):
    """Provider client wired to the scripted provider."""
    client = provider.client()
    yield client
    await client.close()
