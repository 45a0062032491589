"""Shared fixtures for relay HTTP tests."""

import asyncio
import copy

import httpx
import pytest
import structlog

from webhook_relay.config import build_config

ENVIRON = {
    "TOKEN_TASHI": "tashi-token",
    "TOKEN_NIMA": "nima-token",
    "GITHUB_WEBHOOK_SECRET": "gh-secret",
    "KRISP_WEBHOOK_SECRET": "krisp-secret",
    "COMPLAINTS_APP_TOKEN": "complaints-token",
}

RAW_CONFIG = {
    "service_name": "relay-test",
    "destinations": {
        "tashi": {"base_url": "https://tashi.example.net", "token_env": "TOKEN_TASHI"},
        "nima": {
            "base_url": "https://nima.example.net",
            "token_env": "TOKEN_NIMA",
            "timeout_ms": 200,
        },
    },
    "sources": {
        "github": {"auth": "signed_request", "secret_env": "GITHUB_WEBHOOK_SECRET"},
        "krisp": {
            "auth": "bearer_secret",
            "secret_env": "KRISP_WEBHOOK_SECRET",
            "envelope": "notetaker:krisp",
        },
    },
    "apps": {
        "complaints": {
            "secret_env": "COMPLAINTS_APP_TOKEN",
            "header": "x-app-token",
            "destination": "tashi",
            "envelope": "complaint-form",
        },
    },
    "routes": [
        {"prefix": "/v1/webhooks/apps", "convention": "source_first"},
        {"prefix": "/v1/webhooks/hosts", "convention": "destination_first"},
        {"prefix": "/v1/complaints", "convention": "fixed", "app": "complaints"},
    ],
}


class Upstream:
    """Recording stand-in for destination servers.

    Attributes:
        requests: Every request that reached a destination.
        delay: Seconds to wait before answering.
        cancelled: Set when a delayed call was cancelled.
        error: Exception raised instead of answering.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 202
        self.content = b'{"accepted":true}'
        self.headers = {"content-type": "application/json", "x-upstream": "agent"}
        self.delay: float | None = None
        self.cancelled = False
        self.error: Exception | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.delay is not None:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return httpx.Response(self.status_code, content=self.content, headers=self.headers)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def environ():
    """Environment holding every referenced secret."""
    return dict(ENVIRON)


@pytest.fixture
def raw_config():
    """Raw relay configuration."""
    return copy.deepcopy(RAW_CONFIG)


@pytest.fixture
def config(raw_config, environ):
    """Validated relay configuration."""
    return build_config(raw_config, environ=environ)


@pytest.fixture
def upstream():
    """Recording destination handler."""
    return Upstream()


@pytest.fixture
def transport(upstream):
    """Outbound transport routed to the recording upstream."""
    return httpx.MockTransport(upstream)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()
