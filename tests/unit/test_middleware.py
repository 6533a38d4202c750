"""
Unit tests for CORS setup and request logging.
"""

import json
import logging

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bookshop.api.dependencies import Settings
from bookshop.api.middleware.cors import cors_origins, setup_cors
from bookshop.api.middleware.logging import (
    REDACTED,
    StructuredLogFormatter,
    redact_sensitive_data,
    request_id_var,
    setup_logging,
)

pytestmark = pytest.mark.asyncio


def build_app(settings: Settings) -> FastAPI:
    app = FastAPI()
    setup_logging(app, log_body=True, structured=False)
    setup_cors(app, settings)

    @app.post("/echo")
    async def echo(payload: dict):
        return payload

    return app


@pytest_asyncio.fixture
async def make_client():
    clients = []

    async def _make(settings: Settings) -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=build_app(settings)), base_url="http://test")
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


def preflight_headers(origin: str) -> dict:
    return {"Origin": origin, "Access-Control-Request-Method": "POST"}


class TestCors:

    async def test_origin_selection(self):
        assert cors_origins(Settings(environment="development")) == ["*"]
        assert cors_origins(Settings(environment="production")) == []
        assert cors_origins(
            Settings(environment="production", cors_origins=["https://shop.test"])
        ) == ["https://shop.test"]

    async def test_development_allows_any_origin_without_credentials(self, make_client):
        client = await make_client(Settings(environment="development"))

        response = await client.options("/echo", headers=preflight_headers("http://localhost:5173"))

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers

    async def test_configured_origin_only(self, make_client):
        client = await make_client(
            Settings(environment="production", cors_origins=["https://shop.test"])
        )

        allowed = await client.options("/echo", headers=preflight_headers("https://shop.test"))
        refused = await client.options("/echo", headers=preflight_headers("https://evil.test"))

        assert allowed.headers["access-control-allow-origin"] == "https://shop.test"
        assert allowed.headers["access-control-allow-credentials"] == "true"
        assert refused.status_code == 400


class TestRequestLogging:

    async def test_redaction_is_recursive(self):
        body = {
            "username": "alice",
            "password": "hunter22",
            "nested": [{"OTP": "123456", "title": "Dune"}],
        }

        assert redact_sensitive_data(body) == {
            "username": "alice",
            "password": REDACTED,
            "nested": [{"OTP": REDACTED, "title": "Dune"}],
        }

    async def test_logged_request_hides_credentials(self, make_client, caplog):
        caplog.set_level(logging.INFO, logger="bookshop.api")
        client = await make_client(Settings(environment="test"))

        response = await client.post(
            "/echo",
            json={"username": "alice", "password": "hunter22"},
            headers={"Authorization": "Bearer secret-token", "X-Request-ID": "req-42"},
        )

        assert response.json() == {"username": "alice", "password": "hunter22"}
        assert response.headers["X-Request-ID"] == "req-42"

        record = next(r for r in caplog.records if r.name == "bookshop.api")
        assert record.message == f"POST /echo -> 200 ({record.duration_ms}ms)"
        assert "hunter22" not in record.request["body"]
        assert "alice" in record.request["body"]
        assert record.request["headers"]["authorization"] == REDACTED

    async def test_request_id_generated_when_absent(self, make_client):
        client = await make_client(Settings(environment="test"))

        response = await client.post("/echo", json={})

        assert len(response.headers["X-Request-ID"]) == 8

    async def test_structured_formatter(self):
        record = logging.LogRecord("bookshop.api", logging.INFO, __file__, 1, "hello", None, None)
        record.status_code = 201
        token = request_id_var.set("req-7")
        try:
            entry = json.loads(StructuredLogFormatter().format(record))
        finally:
            request_id_var.reset(token)

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["request_id"] == "req-7"
        assert entry["status_code"] == 201
