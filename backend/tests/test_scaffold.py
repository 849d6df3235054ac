"""Tests verifying the service scaffold: health, middleware, handlers, startup, logging."""

import logging
import uuid
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from totsylist.config import Settings, settings
from totsylist.logging import _LogFileTee, configure_logging, resolve_level
from totsylist.main import app, lifespan
from totsylist.models.contracts import ErrorResponse
from totsylist.utils.gemini_client import GenerationClient


class TestHealthEndpoint:
    """Verify the health endpoint returns the expected shape."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        """Health endpoint returns 200 with status, version, environment and Gemini fields."""
        resp = await client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
        assert "environment" in body
        assert body["gemini"] == "not_configured"
        assert body["model"] == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_health_reports_configured_gemini(self, client, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "test-key")
        resp = await client.get("/health")
        body = resp.json()
        assert body["gemini"] == "configured"
        assert "test-key" not in resp.text


class TestRequestIdMiddleware:
    """Every response carries X-Request-ID."""

    @pytest.mark.asyncio
    async def test_generates_request_id(self, client):
        resp = await client.get("/health")
        uuid.UUID(resp.headers["X-Request-ID"])

    @pytest.mark.asyncio
    async def test_echoes_client_request_id(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_ids_differ_between_requests(self, client):
        first = await client.get("/health")
        second = await client.get("/health")
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


class TestExceptionHandler:
    """Verify unhandled exceptions return consistent ErrorResponse JSON."""

    @pytest.mark.asyncio
    @patch(
        "totsylist.api.routes.generate_list.generate_shopping_list",
        side_effect=RuntimeError("unexpected bug"),
    )
    async def test_unhandled_exception_returns_500_json(self, _mock, fake_generator):
        """Unhandled exception returns 500 with ErrorResponse shape, not HTML."""
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.post("/api/generate-list", json={"userInput": "twins"})
        assert resp.status_code == 500
        er = ErrorResponse.model_validate(resp.json())
        assert er.error == "internal_error"
        assert er.retryable is True
        assert "unexpected bug" not in resp.text
        assert "detail" not in resp.json()
        uuid.UUID(resp.headers["X-Request-ID"])


class TestValidationErrorHandler:
    """Verify validation errors return ErrorResponse JSON (not FastAPI's default)."""

    @pytest.mark.asyncio
    async def test_validation_returns_error_response_shape(self, client):
        resp = await client.post("/api/generate-list", json={"wrong": "field"})
        assert resp.status_code == 422
        er = ErrorResponse.model_validate(resp.json())
        assert er.error == "validation_error"
        assert er.retryable is False
        assert "userInput" in er.message
        assert "detail" not in resp.json()
        assert resp.headers["X-Request-ID"] != ""


class TestLifespan:
    """The shared Gemini client is built once at startup."""

    @pytest.mark.asyncio
    async def test_builds_client_when_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "test-key")
        with patch("totsylist.utils.gemini_client.genai.Client"):
            async with lifespan(app):
                assert isinstance(app.state.generation_client, GenerationClient)
                assert app.state.generation_client.model == settings.gemini_model
        assert app.state.generation_client is None

    @pytest.mark.asyncio
    async def test_missing_key_does_not_stop_startup(self):
        with patch("totsylist.utils.gemini_client.genai.Client") as sdk_cls:
            async with lifespan(app):
                assert app.state.generation_client is None
        sdk_cls.assert_not_called()


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.gemini_model == "gemini-2.5-flash"
        assert s.gemini_api_version == "v1"
        assert s.gemini_timeout_seconds == 120.0
        assert s.log_level == "INFO"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
        s = Settings(_env_file=None)
        assert s.gemini_api_key == "env-key"
        assert s.gemini_model == "gemini-2.5-pro"

    def test_cors_origin_list(self):
        s = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,,")
        assert s.cors_origin_list == ["http://a.test", "http://b.test"]

    def test_cors_origin_list_empty(self):
        assert Settings(_env_file=None, cors_origins="").cors_origin_list == []


class TestLogging:
    def test_resolve_level(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level("WARNING") == logging.WARNING
        assert resolve_level("nonsense") == logging.INFO

    def test_log_file_tee_writes_file(self, tmp_path, capsys):
        path = tmp_path / "app.log"
        writer = _LogFileTee(str(path))
        writer.write('{"event": "hello"}\n')
        writer.flush()
        assert path.read_text() == '{"event": "hello"}\n'
        assert '{"event": "hello"}' in capsys.readouterr().out

    def test_log_file_tee_degrades_to_stdout(self, tmp_path, capsys):
        writer = _LogFileTee(str(tmp_path / "missing" / "app.log"))
        writer.write("still logged\n")
        writer.flush()
        captured = capsys.readouterr()
        assert "still logged" in captured.out
        assert "Could not open log file" in captured.err
        assert "File logging disabled" not in captured.err
        assert not (tmp_path / "missing").exists()

    def test_log_file_tee_disables_file_after_write_failure(self, tmp_path, capsys):
        path = tmp_path / "app.log"
        writer = _LogFileTee(str(path))
        writer._file.close()
        writer.write("first\n")
        writer.write("second\n")
        captured = capsys.readouterr()
        assert "first" in captured.out
        assert "second" in captured.out
        assert captured.err.count("File logging disabled") == 1
        assert path.read_text() == ""

    def test_configure_logging_sets_root_level(self, tmp_path):
        try:
            configure_logging(environment="production", log_level="WARNING", log_file="")
            assert logging.getLogger().level == logging.WARNING
        finally:
            configure_logging()
