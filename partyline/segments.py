"""Split message content into prose and fenced-code segments for display."""

from __future__ import annotations

import re
from dataclasses import dataclass

FENCE = "```"
_FENCED_BLOCK = re.compile(r"```([a-zA-Z0-9]*)\n?([\s\S]*?)```")


@dataclass(frozen=True)
class Segment:
    kind: str          # "prose" or "code"
    text: str
    language: str = ""


def split_segments(content: str) -> list[Segment]:
    """
    Alternate prose and code segments in order. Empty prose between blocks
    is dropped; an unclosed fence stays prose (it is still streaming in).
    """
    if FENCE not in content:
        return [Segment("prose", content)]

    segments = []
    pos = 0
    for match in _FENCED_BLOCK.finditer(content):
        prose = content[pos:match.start()]
        if prose.strip():
            segments.append(Segment("prose", prose))
        segments.append(Segment("code", match.group(2), match.group(1)))
        pos = match.end()
    tail = content[pos:]
    if tail.strip():
        segments.append(Segment("prose", tail))
    return segments
