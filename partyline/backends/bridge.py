"""
Chat bridge backend — the local HTTP server that fronts the model runtime.
Streams replies as SSE frames on /api/chat/stream and answers one-shot
requests on /api/chat.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

import httpx

from partyline.backends.base import BaseBackend, BackendResponse

logger = logging.getLogger(__name__)

DEFAULT_STREAM_PATH = "/api/chat/stream"
DEFAULT_CHAT_PATH = "/api/chat"


class ChatBridgeBackend(BaseBackend):
    """Backend for the local chat bridge."""

    def __init__(
        self,
        name: str,
        url: str,
        model: str = "llama3.1",
        timeout: float = 120,
        stream_path: str = DEFAULT_STREAM_PATH,
        chat_path: str = DEFAULT_CHAT_PATH,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name, url, model=model, timeout=timeout, transport=transport)
        self.stream_path = stream_path
        self.chat_path = chat_path

    @property
    def stream_url(self) -> str:
        return f"{self.url}{self.stream_path}"

    def _body(self, messages: list[dict]) -> dict:
        return {"messages": messages, "model": self.model}

    @asynccontextmanager
    async def stream_chat(self, messages: list[dict]):
        """Open the streaming request; the caller reads the body."""
        async with self._client() as client:
            async with client.stream(
                "POST",
                self.stream_url,
                json=self._body(messages),
            ) as resp:
                logger.debug(
                    "Bridge '%s' stream opened: HTTP %d", self.name, resp.status_code
                )
                yield resp

    async def forward(self, messages: list[dict]) -> BackendResponse:
        """Forward a non-streaming request to the bridge."""
        t0 = time.monotonic()
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.url}{self.chat_path}",
                    json=self._body(messages),
                )
                latency = (time.monotonic() - t0) * 1000
                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=f"HTTP {resp.status_code}: {resp.text[:200]}",
                    )
                try:
                    data = resp.json()
                except ValueError:
                    data = {"content": resp.text}
                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=data if isinstance(data, dict) else {"content": resp.text},
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Bridge '%s' timed out after %.0fms", self.name, latency)
            return BackendResponse(
                ok=False, backend_name=self.name, latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except httpx.HTTPError as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Bridge '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False, backend_name=self.name, latency_ms=latency,
                error=str(e),
            )

    async def health_check(self) -> bool:
        """Any HTTP answer from the bridge counts as reachable."""
        try:
            async with self._client(timeout=5) as client:
                await client.get(f"{self.url}/")
                return True
        except httpx.HTTPError:
            return False
