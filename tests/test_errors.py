"""Error envelope produced by the central exception handlers, and /health."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise.exceptions import DBConnectionError, DoesNotExist, IntegrityError

from carwash import settings
from carwash.errors import (
    Forbidden,
    NotFound,
    format_validation_error,
    register_exception_handlers,
)
from carwash.main import create_app


def failing_app(exc: Exception) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return app


class TestEnvelope:
    def test_app_error(self):
        resp = TestClient(failing_app(NotFound("Vehicle not found"))).get("/boom")
        assert resp.status_code == 404
        body = resp.json()
        assert body == {
            "success": False,
            "error": "Vehicle not found",
            "path": "/boom",
            "timestamp": body["timestamp"],
        }

    def test_default_detail(self):
        resp = TestClient(failing_app(Forbidden())).get("/boom")
        assert resp.status_code == 403
        assert resp.json()["error"] == "Access denied"

    def test_unknown_route_uses_envelope(self):
        resp = TestClient(failing_app(NotFound())).get("/nowhere")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_integrity_error_is_400(self):
        resp = TestClient(failing_app(IntegrityError("UNIQUE constraint failed"))).get(
            "/boom"
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Duplicate field value entered"

    def test_does_not_exist_is_404(self):
        resp = TestClient(failing_app(DoesNotExist("gone"))).get("/boom")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Record not found"

    def test_db_down_is_503(self):
        resp = TestClient(failing_app(DBConnectionError("refused"))).get("/boom")
        assert resp.status_code == 503

    def test_unhandled_is_500_with_trace_outside_production(self):
        client = TestClient(failing_app(RuntimeError("kaboom")), raise_server_exceptions=False)
        with patch.object(settings, "IS_PRODUCTION", False):
            resp = client.get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Internal server error"
        assert "kaboom" in body["details"]

    def test_unhandled_hides_trace_in_production(self):
        client = TestClient(failing_app(RuntimeError("kaboom")), raise_server_exceptions=False)
        with patch.object(settings, "IS_PRODUCTION", True):
            resp = client.get("/boom")
        assert resp.status_code == 500
        assert "details" not in resp.json()


class TestValidationFormatting:
    def test_body_prefix_dropped(self):
        err = {"loc": ("body", "email"), "msg": "Value error, Valid email is required"}
        assert format_validation_error(err) == "email: Valid email is required"

    def test_model_level_error(self):
        err = {"loc": ("body",), "msg": "Value error, At least one field is required"}
        assert format_validation_error(err) == "At least one field is required"


# ---------------------------------------------------------------------------
# /health and the assembled app
# ---------------------------------------------------------------------------


@asynccontextmanager
async def no_lifespan(app):
    yield


def _db_connection(execute_query: AsyncMock) -> MagicMock:
    conns = MagicMock()
    conns.get.return_value.execute_query = execute_query
    return conns


class TestHealth:
    def test_connected(self):
        with patch("carwash.main.connections", _db_connection(AsyncMock())):
            resp = TestClient(create_app(lifespan=no_lifespan)).get("/health")
        assert resp.status_code == 200
        assert resp.json()["database"] == "connected"

    def test_disconnected(self):
        down = AsyncMock(side_effect=DBConnectionError("refused"))
        with patch("carwash.main.connections", _db_connection(down)):
            resp = TestClient(create_app(lifespan=no_lifespan)).get("/health")
        assert resp.status_code == 503
        assert resp.json()["database"] == "disconnected"

    def test_routes_mounted_under_prefix(self):
        paths = create_app(lifespan=no_lifespan).openapi()["paths"]
        assert f"{settings.API_PREFIX}/bookings/available-slots" in paths
        assert f"{settings.API_PREFIX}/admin/financial-report" in paths
        assert "/health" in paths
