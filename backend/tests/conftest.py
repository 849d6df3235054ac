"""Shared fixtures: an ASGI client and a Gemini-free default configuration."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from factories import fenced, make_shopping_list
from totsylist.config import settings
from totsylist.main import app


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """No real API key and no shared client leak into a test."""
    monkeypatch.setattr(settings, "gemini_api_key", "")
    monkeypatch.setattr(settings, "gemini_model", "gemini-2.5-flash")
    app.state.generation_client = None
    yield
    app.state.generation_client = None


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def fake_generator():
    """Stand-in GenerationClient installed as the app's shared client."""
    generator = MagicMock()
    generator.model = "gemini-test"
    generator.generate = AsyncMock(return_value=fenced(make_shopping_list()))
    app.state.generation_client = generator
    return generator
