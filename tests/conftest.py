"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files: pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise

from carwash.deps import get_current_user
from carwash.errors import register_exception_handlers
from carwash.rate_limit import ALL_LIMITERS
from carwash.routers import (
    admin,
    bookings,
    reviews,
    services,
    transactions,
    users,
    vehicles,
)
from carwash.settings import tortoise_config

from .factories import make_admin, make_customer

ROUTERS = (
    users.router,
    services.router,
    bookings.router,
    vehicles.router,
    transactions.router,
    reviews.router,
    admin.router,
)

# Every module that talks to the slots cache
CACHE_MODULES = (
    "carwash.routers.bookings",
    "carwash.routers.transactions",
    "carwash.routers.admin",
)


# ---------------------------------------------------------------------------
# Isolation: fresh rate-limit windows and no real Redis in tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_rate_limits():
    for limiter in ALL_LIMITERS:
        limiter.reset()
    yield
    for limiter in ALL_LIMITERS:
        limiter.reset()


@pytest.fixture(autouse=True)
def no_redis():
    """Slots cache is always a miss; writes and invalidations are recorded."""
    mocks = {
        "get": AsyncMock(return_value=None),
        "set": AsyncMock(),
        "invalidate": AsyncMock(),
    }
    patchers = [patch("carwash.routers.bookings.get_booked_slots", mocks["get"])]
    patchers.append(patch("carwash.routers.bookings.cache_booked_slots", mocks["set"]))
    patchers += [
        patch(f"{module}.invalidate_slots_cache", mocks["invalidate"])
        for module in CACHE_MODULES
    ]
    for p in patchers:
        p.start()
    yield mocks
    for p in patchers:
        p.stop()


# ---------------------------------------------------------------------------
# App builder: used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(current_user=None) -> FastAPI:
    """
    Fresh FastAPI app with every router and the real exception handlers.
    When `current_user` is given, get_current_user is overridden to return it
    unconditionally; role checks (require_admin) still run for real.
    """
    app = FastAPI()
    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    if current_user is not None:

        async def _user():
            return current_user

        app.dependency_overrides[get_current_user] = _user

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client():
    return TestClient(build_app(make_customer()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_client():
    """
    Client with NO dependency overrides.
    Use this when you want the real auth dependency to run so you can assert 401/403.
    """
    return TestClient(build_app(), raise_server_exceptions=True)


@pytest.fixture()
def client_factory():
    def _make(current_user) -> TestClient:
        return TestClient(build_app(current_user), raise_server_exceptions=True)

    return _make


# ---------------------------------------------------------------------------
# Real database: in-memory SQLite for lifecycle tests
# ---------------------------------------------------------------------------


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
async def db():
    await Tortoise.init(config=tortoise_config("sqlite://:memory:"))
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()
