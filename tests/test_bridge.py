"""
Tests for the chat bridge backend.
Run with: pytest tests/test_bridge.py
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from partyline.backends.base import BackendResponse
from partyline.backends.bridge import ChatBridgeBackend


def _backend(handler=None, **kwargs) -> ChatBridgeBackend:
    transport = httpx.MockTransport(handler) if handler else None
    return ChatBridgeBackend(name="test", url="http://bridge.test/", transport=transport, **kwargs)


# ---------------------------------------------------------------------------
# BackendResponse
# ---------------------------------------------------------------------------

def test_backend_response_content():
    """content reads the bridge's flat shape and Ollama's nested one."""
    assert BackendResponse(ok=True, data={"content": "hi"}).content == "hi"
    assert BackendResponse(ok=True, data={"message": {"content": "yo"}}).content == "yo"

    err = BackendResponse(ok=False, error="timeout")
    assert not err.ok
    assert err.content == ""


# ---------------------------------------------------------------------------
# ChatBridgeBackend
# ---------------------------------------------------------------------------

def test_bridge_init():
    b = ChatBridgeBackend(name="local", url="http://127.0.0.1:8080/", model="llama3.1", timeout=60)
    assert b.url == "http://127.0.0.1:8080"
    assert b.stream_url == "http://127.0.0.1:8080/api/chat/stream"
    assert b.timeout == 60
    assert "local" in repr(b)


@pytest.mark.asyncio
async def test_stream_chat_posts_messages_and_model():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"data: x\n\n")

    b = _backend(handler, model="llama3.1")
    async with b.stream_chat([{"role": "user", "content": "hi"}]) as resp:
        assert resp.status_code == 200
        body = await resp.aread()

    assert body == b"data: x\n\n"
    assert seen["method"] == "POST"
    assert seen["url"] == "http://bridge.test/api/chat/stream"
    assert seen["body"] == {"messages": [{"role": "user", "content": "hi"}], "model": "llama3.1"}


@pytest.mark.asyncio
async def test_forward_success():
    def handler(request):
        assert request.url.path == "/api/chat"
        return httpx.Response(200, json={"content": "hello"})

    result = await _backend(handler).forward([{"role": "user", "content": "hi"}])
    assert result.ok
    assert result.content == "hello"
    assert result.backend_name == "test"


@pytest.mark.asyncio
async def test_forward_non_json_body():
    result = await _backend(lambda r: httpx.Response(200, text="plain words")).forward([])
    assert result.ok
    assert result.content == "plain words"


@pytest.mark.asyncio
async def test_forward_http_error():
    result = await _backend(lambda r: httpx.Response(502, text="bad gateway")).forward([])
    assert not result.ok
    assert result.status_code == 502
    assert "HTTP 502" in result.error


@pytest.mark.asyncio
async def test_forward_timeout():
    """Timeouts come back as an error response, not an exception."""
    b = ChatBridgeBackend(name="test", url="http://fake:8080", timeout=1)

    with patch("partyline.backends.base.httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.post.side_effect = httpx.TimeoutException("timed out")
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_client

        result = await b.forward([])
        assert not result.ok
        assert "Timeout" in result.error


@pytest.mark.asyncio
async def test_health_check_up():
    assert await _backend(lambda r: httpx.Response(404)).health_check()


@pytest.mark.asyncio
async def test_health_check_down():
    def handler(request):
        raise httpx.ConnectError("refused")

    assert not await _backend(handler).health_check()
