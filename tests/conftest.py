"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import APIRouter, Depends, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel

from gateway.api.deps import sanitized_body

WHITELISTED_ORIGIN = "https://shop.example"
SECOND_ORIGIN = "https://admin.shop.example"


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Provide default settings for all tests."""
    monkeypatch.delenv("CORS_WHITELIST_URLS", raising=False)
    monkeypatch.setenv("GATEWAY_CORS_WHITELIST_URLS", f"{WHITELISTED_ORIGIN}, {SECOND_ORIGIN}")
    monkeypatch.setenv("GATEWAY_REDIS_URL", "redis://localhost:6379")
    monkeypatch.setenv("GATEWAY_REDIS_CONNECT_RETRIES", "1")
    monkeypatch.setenv("GATEWAY_LOG_JSON", "false")
    monkeypatch.setenv("GATEWAY_LOG_LEVEL", "debug")
    for name in ("GATEWAY_CORS_STRICT", "GATEWAY_MIN_APP_VERSION", "GATEWAY_MAX_BODY_BYTES"):
        monkeypatch.delenv(name, raising=False)

    # Reset cached settings
    import gateway.config.loader as loader
    loader._settings = None
    yield
    loader._settings = None


class Item(BaseModel):
    name: str
    tags: list[str] = []


def _build_api_router() -> APIRouter:
    """Stand-in for the storefront routers: echoes what the pipeline handed downstream."""
    router = APIRouter(prefix="/clientApis")

    @router.post("/v1/search")
    async def search(body=Depends(sanitized_body)):
        return {"body": body}

    @router.get("/v1/on_search")
    async def on_search():
        return {"results": []}

    @router.post("/v1/items")
    async def create_item(item: Item):
        return item.model_dump()

    @router.post("/v1/raw")
    async def raw(request: Request):
        body = await request.body()
        return {
            "json": await request.json() if body.startswith((b"{", b"[")) else None,
            "text": body.decode(),
            "content_length": request.headers.get("content-length"),
        }

    @router.put("/v2/cart/{user_id}/{item_id}")
    async def update_item(user_id: str, item_id: str, body=Depends(sanitized_body)):
        return {"user_id": user_id, "item_id": item_id, "body": body}

    return router


@pytest.fixture
def mock_cache_connect():
    """Keep the lifespan from dialing Redis."""
    with patch("gateway.main.CacheClient.connect", new_callable=AsyncMock, return_value=False) as mock_connect:
        yield mock_connect


@pytest.fixture
def make_client(mock_cache_connect):
    """Factory for test clients; env overrides must be set before calling it."""
    clients: list[TestClient] = []

    def _make(**kwargs) -> TestClient:
        from gateway.main import create_app

        app = create_app(_build_api_router(), **kwargs)
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    """Gateway test client with the default (permissive) CORS policy."""
    return make_client()
