"""Pytest configuration and fixtures."""

import json
from typing import Any

import httpx
import pytest
from loguru import logger

from twilio_relay.config.settings import RelaySettings
from twilio_relay.webhooks.forwarder import WebhookForwarder

RELAY_ENV_VARS = [
    "MAIN_APP_URL",
    "SUPABASE_ANON_KEY",
    "DEBUG_MODE",
    "PORT",
    "HOST",
    "LOG_LEVEL",
    "LOG_JSON",
    "FORWARD_TIMEOUT",
    "MAX_BODY_BYTES",
]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Clear relay variables and run from an empty directory (no .env)."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> RelaySettings:
    """Valid settings pointing at a fake main app."""
    return RelaySettings(
        main_app_url="http://main.test",
        supabase_anon_key="anon-key",
    )


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


class DownstreamRecorder:
    """Fake main application behind an httpx.MockTransport."""

    def __init__(self, status_code: int = 200, body: Any = None, error: type | None = None):
        self.status_code = status_code
        self.body = body if body is not None else {"ok": True}
        self.error = error
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("simulated failure", request=request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def downstream() -> DownstreamRecorder:
    return DownstreamRecorder()


@pytest.fixture
def forwarder(settings: RelaySettings, downstream: DownstreamRecorder) -> WebhookForwarder:
    return WebhookForwarder.from_settings(settings, transport=downstream.transport)
