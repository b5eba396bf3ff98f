"""Shared pytest fixtures for the SolarGen test suite."""

import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from solargen.config import settings
from solargen.main import app
from solargen.services.generator import make_rng
from solargen.services.sink import MemorySink


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client() -> AsyncClient:
    """Async test client that talks directly to the ASGI app (no network required)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest.fixture
def api_key() -> str:
    """The API key configured in settings (defaults to 'dev-api-key' in tests)."""
    return settings.api_key


@pytest.fixture
def auth_headers(api_key: str) -> dict[str, str]:
    """Ready-made headers dict with X-API-Key set."""
    return {"X-API-Key": api_key}


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random source so generation tests are reproducible."""
    return make_rng(1234)


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()
