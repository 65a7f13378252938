"""
Server-sent event decoding for the chat stream.

The bridge sends blank-line separated frames, each made of one or more
`data:` lines. Network chunks can split a frame (or a UTF-8 sequence)
anywhere, so EventDecoder keeps whatever is left over between chunks.
parse_event() then turns one raw frame into the text it contributes.
"""

from __future__ import annotations

import codecs
import json
import re
from dataclasses import dataclass

EVENT_DELIMITER = "\n\n"
DATA_PREFIX = "data:"
ERROR_SENTINEL = "__ERR__:"

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass
class StreamEvent:
    """What one frame contributes: text for the buffer, and whether it ends the stream."""
    text: str = ""
    done: bool = False
    is_error: bool = False


class EventDecoder:
    """Incremental bytes -> raw event frames."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Decoded text not yet terminated by a blank line."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Add a network chunk; return every frame it completes, in order."""
        self._buffer += self._decoder.decode(chunk)
        frames = []
        while True:
            idx = self._buffer.find(EVENT_DELIMITER)
            if idx == -1:
                break
            frames.append(self._buffer[:idx])
            self._buffer = self._buffer[idx + len(EVENT_DELIMITER):]
        return frames

    def close(self) -> str | None:
        """
        End of body: finish the UTF-8 decoder and hand back the last frame
        if the server closed without its blank-line terminator.
        """
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        return tail if tail.strip() else None


def extract_data(raw_event: str) -> str:
    """Join the payload of every `data:` line in a frame."""
    lines = _LINE_SPLIT.split(raw_event)
    data = "\n".join(
        line[len(DATA_PREFIX):].strip()
        for line in lines
        if line.startswith(DATA_PREFIX)
    ).strip()
    # The bridge sometimes double-wraps frames
    while data.startswith(DATA_PREFIX):
        data = data[len(DATA_PREFIX):].strip()
    return data


def is_error_payload(data: str) -> bool:
    return data.startswith(ERROR_SENTINEL) or data.lower().startswith("error")


def parse_event(raw_event: str) -> StreamEvent | None:
    """
    Interpret one frame. Returns None for frames with no payload.

    Error payloads become an "[error] ..." annotation. JSON records give
    their message.content and done flag. Anything that fails to parse is
    passed through as literal text.
    """
    data = extract_data(raw_event)
    if not data:
        return None

    if is_error_payload(data):
        return StreamEvent(text=f"\n[error] {data}", is_error=True)

    try:
        record = json.loads(data)
    except ValueError:
        return StreamEvent(text=data)

    if not isinstance(record, dict):
        return StreamEvent()

    message = record.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    text = content if isinstance(content, str) else ""
    return StreamEvent(text=text, done=record.get("done") is True)
