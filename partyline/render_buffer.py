"""
Render buffer — coalesces streamed tokens into batched store updates.

Tokens can arrive far faster than the UI (and the storage slot) should be
touched. The first accumulate() after a flush arms one trailing-edge timer;
everything that arrives before it fires rides along in the same flush.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_DELAY = 0.08  # seconds


class RenderBuffer:
    """Pending-text cell plus a single live flush timer."""

    def __init__(
        self,
        sink: Callable[[str], None],
        delay: float = DEFAULT_FLUSH_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.sink = sink
        self.delay = delay
        self._loop = loop
        self._pending = ""
        self._timer: asyncio.TimerHandle | None = None
        self.flush_count = 0

    @property
    def pending(self) -> str:
        return self._pending

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def accumulate(self, text: str):
        """Add text and arm the flush timer if it isn't already running."""
        self._pending += text
        if self._timer is None:
            self._timer = self._get_loop().call_later(self.delay, self._on_timer)

    def _on_timer(self):
        self._timer = None
        self.flush()

    def _disarm(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def flush(self):
        """Hand pending text to the sink now, and drop any armed timer."""
        self._disarm()
        text = self._pending
        if not text:
            return
        self._pending = ""
        self.flush_count += 1
        self.sink(text)

    def cancel(self):
        """Drop the timer and any unflushed text."""
        if self._pending:
            logger.debug("Render buffer dropped %d unflushed chars", len(self._pending))
        self._disarm()
        self._pending = ""
