"""Tests for LoggingMiddleware request context.

Captures structlog events with LogCapture behind merge_contextvars, the same
processor order configure_structlog uses, over a bare FastAPI app.
"""

from __future__ import annotations

import pytest
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from structlog.testing import LogCapture

from src.orgmeta.api.middleware.logging import LoggingMiddleware

ACME = "https://acme.my.salesforce.com"


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture
def captured():
    capture = LogCapture()
    structlog.contextvars.clear_contextvars()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture.entries
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
    handler_logger = structlog.get_logger("handler")

    @app.get("/api/v1/metadata/objects")
    async def objects(instance_url: str):
        handler_logger.info("handler.reading")
        return {"ok": True}

    @app.get("/api/v1/metadata/users/{user_id}/objects")
    async def user_objects(user_id: str):
        return {"user_id": user_id}

    @app.get("/api/v1/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/v1/metadata/sync")
    async def sync():
        raise RuntimeError("boom")

    return app


def _client(app: FastAPI) -> AsyncClient:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    return AsyncClient(transport=transport, base_url="http://test")


def _completed(entries: list[dict]) -> dict:
    return next(e for e in entries if e["event"] == "request_completed")


# ── Tests ──────────────────────────────────────────────────────────────────


class TestLoggingMiddleware:
    async def test_instance_key_is_canonicalized(self, captured):
        async with _client(_make_app()) as client:
            response = await client.get(
                "/api/v1/metadata/objects",
                params={"instance_url": "https://acme.lightning.force.com/"},
            )

        entry = _completed(captured)
        assert response.status_code == 200
        assert entry["instance_key"] == ACME
        assert entry["status_code"] == 200
        assert entry["request_id"] == response.headers["X-Request-ID"]

    async def test_handler_events_carry_request_context(self, captured):
        async with _client(_make_app()) as client:
            response = await client.get("/api/v1/metadata/objects", params={"instance_url": ACME})

        inner = next(e for e in captured if e["event"] == "handler.reading")
        assert inner["instance_key"] == ACME
        assert inner["request_id"] == response.headers["X-Request-ID"]

    async def test_user_id_from_path(self, captured):
        async with _client(_make_app()) as client:
            await client.get("/api/v1/metadata/users/u-42/objects")

        entry = _completed(captured)
        assert entry["user_id"] == "u-42"
        assert "instance_key" not in entry

    async def test_admin_key_flag_without_value(self, captured):
        async with _client(_make_app()) as client:
            await client.get(
                "/api/v1/metadata/objects",
                params={"instance_url": ACME},
                headers={"X-Admin-Key": "s3cret"},
            )

        entry = _completed(captured)
        assert entry["admin_key"] is True
        assert "s3cret" not in repr(entry)

    async def test_incoming_request_id_reused(self, captured):
        async with _client(_make_app()) as client:
            response = await client.get("/api/v1/health", headers={"X-Request-ID": "lb-123"})

        assert response.headers["X-Request-ID"] == "lb-123"
        assert _completed(captured)["request_id"] == "lb-123"

    async def test_malformed_request_id_replaced(self, captured):
        async with _client(_make_app()) as client:
            response = await client.get("/api/v1/health", headers={"X-Request-ID": "bad id with spaces"})

        assert response.headers["X-Request-ID"] != "bad id with spaces"

    async def test_health_logged_at_debug(self, captured):
        async with _client(_make_app()) as client:
            await client.get("/api/v1/health")

        assert _completed(captured)["log_level"] == "debug"

    async def test_unhandled_error_logged(self, captured):
        async with _client(_make_app()) as client:
            response = await client.post("/api/v1/metadata/sync")

        assert response.status_code == 500
        entry = next(e for e in captured if e["event"] == "request_error")
        assert entry["path"] == "/api/v1/metadata/sync"
        assert entry["log_level"] == "error"

    async def test_context_cleared_after_request(self, captured):
        async with _client(_make_app()) as client:
            await client.get("/api/v1/metadata/objects", params={"instance_url": ACME})

        assert structlog.contextvars.get_contextvars() == {}
