"""Tests for error rendering, logging filters and server configuration."""

import json
import logging
import sys

import pytest
from fastapi import HTTPException
from pydantic import BaseModel, ValidationError
from starlette.requests import Request

from dynapi.api.error_handler import APIErrorHandler
from dynapi.api.logging_config import (
    CentralizedErrorFilter,
    KnownErrorFormatter,
    LoggingConfigurator,
    parse_level,
)
from dynapi.config import ServerConfig
from dynapi.exceptions import ConflictError, NotFoundError


def make_request(path="/things", request_id="req-1"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": [],
        "state": {"request_id": request_id},
    }
    return Request(scope)


def body_of(response):
    return json.loads(response.body)


def make_record(name, level, message="boom", exc_info=None):
    return logging.LogRecord(name, level, __file__, 1, message, None, exc_info)


class Item(BaseModel):
    count: int


class TestAPIErrorHandler:
    """Test exception translation into the JSON error body."""

    @pytest.mark.asyncio
    async def test_api_error(self):
        response = await APIErrorHandler.handle_exception(
            make_request(), ConflictError("Endpoint already exists", {"path": "/x"})
        )
        body = body_of(response)
        assert response.status_code == 409
        assert body["error_code"] == "conflict"
        assert body["message"] == "Endpoint already exists"
        assert body["details"] == {"path": "/x"}
        assert body["path"] == "/things"
        assert body["request_id"] == "req-1"
        assert body["timestamp"].endswith("Z")
        assert response.headers["x-request-id"] == "req-1"

    @pytest.mark.asyncio
    async def test_details_are_omitted_when_empty(self):
        response = await APIErrorHandler.handle_exception(
            make_request(), NotFoundError("Endpoint not found")
        )
        assert "details" not in body_of(response)

    @pytest.mark.asyncio
    async def test_http_exception(self):
        response = await APIErrorHandler.handle_exception(
            make_request(), HTTPException(status_code=413, detail="Request body too large")
        )
        body = body_of(response)
        assert response.status_code == 413
        assert body["error_code"] == "payload_too_large"
        assert body["message"] == "Request body too large"

    @pytest.mark.asyncio
    async def test_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            Item(count="lots")
        response = await APIErrorHandler.handle_exception(make_request(), exc_info.value)
        body = body_of(response)
        assert response.status_code == 422
        assert body["error_code"] == "validation_error"
        assert body["details"][0]["field"] == "count"

    @pytest.mark.asyncio
    async def test_unexpected_error_hides_internals(self, caplog):
        with caplog.at_level(logging.ERROR, logger="dynapi.api.error_handler"):
            response = await APIErrorHandler.handle_exception(
                make_request(), RuntimeError("database password is hunter2")
            )
        body = body_of(response)
        assert response.status_code == 500
        assert body["error_code"] == "internal_error"
        assert body["message"] == "An unexpected error occurred"
        assert "hunter2" not in response.body.decode()
        assert any("RuntimeError" in r.getMessage() for r in caplog.records)


class TestLoggingFilters:
    """Test the framework log filter and client-error formatter."""

    def test_filter_drops_framework_errors(self):
        error_filter = CentralizedErrorFilter()
        assert not error_filter.filter(make_record("uvicorn.error", logging.ERROR))
        assert not error_filter.filter(
            make_record("app", logging.ERROR, "Exception in ASGI application")
        )
        assert error_filter.filter(make_record("uvicorn.error", logging.INFO))
        assert error_filter.filter(make_record("dynapi.api.error_handler", logging.ERROR))

    def test_formatter_omits_client_error_traces(self):
        formatter = KnownErrorFormatter("%(message)s")
        try:
            raise NotFoundError("Endpoint not found")
        except NotFoundError:
            client = sys.exc_info()
        try:
            raise RuntimeError("broken")
        except RuntimeError:
            server = sys.exc_info()

        assert formatter.formatException(client) == ""
        assert "RuntimeError: broken" in formatter.formatException(server)

    def test_parse_level(self):
        assert parse_level("warn") == logging.WARNING
        assert parse_level("TRACE") == logging.DEBUG
        assert parse_level(None) == logging.INFO
        assert parse_level("nonsense") == logging.INFO

    def test_configure_does_not_duplicate_filters(self):
        root = logging.getLogger()
        previous = root.level
        try:
            LoggingConfigurator.configure("info")
            LoggingConfigurator.configure("debug")
            uvicorn_logger = logging.getLogger("uvicorn.error")
            filters = [
                f for f in uvicorn_logger.filters if isinstance(f, CentralizedErrorFilter)
            ]
            assert len(filters) == 1
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)


class TestServerConfig:
    """Test configuration defaults and environment loading."""

    def test_defaults(self):
        config = ServerConfig()
        assert config.port == 4242
        assert str(config.assets_path).endswith("assets")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DYNAPI_PORT", "9000")
        monkeypatch.setenv("DYNAPI_WORKERS", "3")
        monkeypatch.setenv("DYNAPI_SEED_DEFAULTS", "false")
        monkeypatch.setenv("DYNAPI_ASSETS_DIR", "/srv/assets")
        config = ServerConfig.from_env(log_level="debug")
        assert config.port == 9000
        assert config.workers == 3
        assert config.seed_defaults is False
        assert config.log_level == "debug"
        assert str(config.assets_path) == "/srv/assets"

    def test_workers_are_bounded(self):
        with pytest.raises(ValidationError):
            ServerConfig(workers=0)
