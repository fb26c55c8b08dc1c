"""Shared pytest fixtures for itembase SDK tests.

Fixture Organization:
    - Configuration fixtures: deterministic ItembaseConfig without .env lookups
    - Clock fixtures: fixed "now" for token expiry decisions
    - HTTP fixtures: Transport over httpx.MockTransport
    - Pagination fixtures: in-memory collection server
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from itembase.config import ItembaseConfig, reset_config
from itembase.models import Page, Token
from itembase.timestamps import format_rfc3339_nano
from itembase.transport import Transport

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Keep ITEMBASE_* variables of the developer's shell out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("ITEMBASE_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """Sandbox configuration with retries disabled."""
    return ItembaseConfig(
        _env_file=None,
        client_id="client-123",
        client_secret="secret-xyz",
        scopes=["user.minimal", "connection.transaction"],
        redirect_url="https://app.example.com/oauth/callback",
        max_retries=0,
        backoff_base=0.0,
        backoff_cap=0.0,
    )


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def valid_token():
    return Token(
        access_token="access-valid",
        refresh_token="refresh-1",
        expiry=FIXED_NOW + timedelta(hours=1),
    )


@pytest.fixture
def expired_token():
    return Token(
        access_token="access-expired",
        refresh_token="refresh-1",
        expiry=FIXED_NOW - timedelta(minutes=5),
    )


@pytest.fixture
def mock_transport(config):
    """Factory: Transport whose requests are answered by ``handler(request)``."""
    created = []

    def _make(handler, **overrides):
        cfg = config.model_copy(update=overrides) if overrides else config
        transport = Transport(cfg, client=httpx.Client(transport=httpx.MockTransport(handler)))
        created.append(transport)
        return transport

    yield _make

    for transport in created:
        transport.close()


def make_documents(count, created_at=None, start=0):
    """Documents with ids doc-<n> and increasing created_at, or a fixed one."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        {
            "id": f"doc-{i}",
            "created_at": created_at or format_rfc3339_nano(base + timedelta(seconds=i)),
            "updated_at": format_rfc3339_nano(base + timedelta(days=1, seconds=i)),
        }
        for i in range(start, start + count)
    ]


class CollectionServer:
    """In-memory paginated collection answering start_at_document offsets."""

    def __init__(self, documents, page_size):
        self.documents = list(documents)
        self.page_size = page_size
        self.calls = []

    def __call__(self, params):
        self.calls.append(dict(params))
        start = int(params.get("start_at_document", 0))
        chunk = self.documents[start : start + self.page_size]
        return Page(
            items=tuple(chunk),
            total_found=len(self.documents),
            returned_in_this_call=len(chunk),
        )


class ScriptedFetch:
    """Returns the scripted pages (or raises scripted exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, params):
        self.calls.append(dict(params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def page(items, total):
    return Page(items=tuple(items), total_found=total, returned_in_this_call=len(items))


@pytest.fixture
def collection_server():
    """Factory: CollectionServer(documents, page_size)."""
    return CollectionServer


@pytest.fixture
def scripted_fetch():
    """Factory: ScriptedFetch(*pages_or_exceptions)."""
    return ScriptedFetch
