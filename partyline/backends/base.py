"""
Base backend abstraction.
A backend knows how to reach a chat endpoint; the session only sees this
interface, so tests and alternate servers can slot in.
"""

from __future__ import annotations

import abc
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Standardized result of a non-streaming chat call."""
    ok: bool
    status_code: int = 200
    data: dict | None = None
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""

    @property
    def content(self) -> str:
        """Extract assistant content from response data."""
        data = self.data or {}
        if isinstance(data.get("content"), str):
            return data["content"]
        message = data.get("message") or {}
        return message.get("content", "") if isinstance(message, dict) else ""


class BaseBackend(abc.ABC):
    """
    Abstract base for chat endpoints.
    `transport` lets callers swap the httpx transport (e.g. MockTransport).
    """

    def __init__(
        self,
        name: str,
        url: str,
        model: str = "",
        timeout: float = 120,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout if timeout is None else timeout,
            transport=self.transport,
        )

    @abc.abstractmethod
    def stream_chat(self, messages: list[dict]) -> AbstractAsyncContextManager[httpx.Response]:
        """
        Open a streaming chat request.
        Yields the httpx response with headers read and the body unread.
        """
        ...

    @abc.abstractmethod
    async def forward(self, messages: list[dict]) -> BackendResponse:
        """Send a non-streaming chat request."""
        ...

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Check if this endpoint is reachable."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r} model={self.model!r}>"
