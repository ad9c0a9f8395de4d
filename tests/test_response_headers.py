"""Security headers and access logger tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from starlette.responses import Response

from gateway.middleware.access_logger import AccessLogger
from gateway.middleware.pipeline import RequestContext
from gateway.middleware.security_headers import SecurityHeaders
from tests.helpers.asgi import make_request


class TestSecurityHeaders:
    @pytest.mark.asyncio
    async def test_request_phase_is_pass_through(self):
        assert await SecurityHeaders().process_request(make_request(), RequestContext()) is None

    @pytest.mark.asyncio
    async def test_xss_and_nosniff_headers_set(self):
        response = await SecurityHeaders().process_response(Response("ok"), RequestContext())
        assert response.headers["x-xss-protection"] == "0"
        assert response.headers["x-content-type-options"] == "nosniff"

    @pytest.mark.asyncio
    async def test_stack_revealing_headers_stripped(self):
        response = Response("ok", headers={"Server": "uvicorn", "X-Powered-By": "Express"})
        response = await SecurityHeaders().process_response(response, RequestContext())
        assert "server" not in response.headers
        assert "x-powered-by" not in response.headers


class TestAccessLogger:
    @pytest.mark.asyncio
    async def test_logs_completed_request(self):
        access_logger = AccessLogger()
        context = RequestContext(origin="https://shop.example")
        request = make_request("POST", path="/clientApis/v1/search", headers={"User-Agent": "pytest\r\n"})

        await access_logger.process_request(request, context)
        with patch("gateway.middleware.access_logger.logger") as mock_logger:
            response = await access_logger.process_response(Response("", status_code=201), context)

        assert response.headers["x-request-id"] == context.request_id
        mock_logger.info.assert_called_once()
        args, kwargs = mock_logger.info.call_args
        assert args == ("request_completed",)
        assert kwargs["method"] == "POST"
        assert kwargs["path"] == "/clientApis/v1/search"
        assert kwargs["status"] == 201
        assert kwargs["client_ip"] == "127.0.0.1"
        assert kwargs["user_agent"] == "pytest"
        assert kwargs["origin"] == "https://shop.example"
        assert kwargs["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_binds_request_id_to_contextvars(self):
        context = RequestContext()
        with patch("gateway.middleware.access_logger.structlog.contextvars.bind_contextvars") as mock_bind:
            await AccessLogger().process_request(make_request(), context)
        mock_bind.assert_called_once_with(request_id=context.request_id)

    @pytest.mark.asyncio
    async def test_response_without_request_phase_still_logged(self):
        with patch("gateway.middleware.access_logger.logger") as mock_logger:
            await AccessLogger().process_response(Response("x"), RequestContext())
        assert mock_logger.info.call_args.kwargs["duration_ms"] is None


@pytest.mark.asyncio
async def test_security_headers_custom_set():
    stage = SecurityHeaders(headers={"x-frame-options": "DENY"}, strip=["Server"])
    response = Response("ok", headers={"Server": "uvicorn", "X-Powered-By": "Express"})
    response = await stage.process_response(response, RequestContext())

    assert response.headers["x-frame-options"] == "DENY"
    assert "x-xss-protection" not in response.headers
    assert "server" not in response.headers
    assert response.headers["x-powered-by"] == "Express"
