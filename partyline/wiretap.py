"""
Wiretap — a structured record of what went over the line.

WireLog appends one JSON object per line for every prompt sent and every
reply (or error) received. The `tap` command reads it back, either as a
colored transcript or as raw JSONL.

Direction is from the client's point of view:
  outbound  client -> chat endpoint
  inbound   chat endpoint -> client
"""

import json
import time
import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_CONTENT = 2000
KEEP_EDGE = 1000

# ANSI colors
C_RESET = "\033[0m"
C_BOLD = "\033[1m"
C_DIM = "\033[2m"

ROLE_COLORS = {
    "user": "\033[96m",       # cyan
    "assistant": "\033[93m",  # yellow
    "error": "\033[91m",      # red
}

ROLE_ICONS = {
    "user": "▶",
    "assistant": "◀",
    "error": "✗",
}


class WireLog:
    """
    Line-buffered JSONL writer.

    Format:
        {"ts": "...", "dir": "outbound|inbound", "role": "...",
         "model": "...", "conv": "...", "len": 123, "content": "..."}
    """

    def __init__(self, log_path: str):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = None

    def _ensure_open(self):
        if self._file is None:
            self._file = open(self.log_path, "a", buffering=1, encoding="utf-8")

    def log(
        self,
        direction: str,
        role: str,
        content: str,
        model: str = "",
        conversation_id: str = "",
    ):
        self._ensure_open()
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "dir": direction,
            "role": role,
            "model": model,
            "conv": conversation_id[:16] if conversation_id else "",
            "len": len(content),
        }
        if len(content) <= MAX_CONTENT:
            entry["content"] = content
        else:
            clipped = len(content) - 2 * KEEP_EDGE
            entry["content"] = (
                content[:KEEP_EDGE]
                + f"\n\n[... {clipped} chars truncated ...]\n\n"
                + content[-KEEP_EDGE:]
            )
        self._file.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def close(self):
        if self._file:
            self._file.close()
            self._file = None


def format_entry(entry: dict, raw: bool = False) -> str:
    """Render one entry for the terminal."""
    if raw:
        return json.dumps(entry, ensure_ascii=False)

    try:
        time_str = datetime.fromisoformat(entry.get("ts", "")).strftime("%H:%M:%S")
    except (ValueError, TypeError):
        time_str = "??:??:??"

    role = entry.get("role", "?")
    color = ROLE_COLORS.get(role, C_RESET)
    arrow = "──▶" if entry.get("dir") == "outbound" else "◀──"

    header = (
        f"  {C_DIM}{time_str} {arrow}{C_RESET} "
        f"{color}{C_BOLD}{ROLE_ICONS.get(role, '?')} {role.upper()}{C_RESET}"
    )
    if entry.get("model"):
        header += f"  [{entry['model']}]"
    header += f"  {C_DIM}({entry.get('len', 0)} chars){C_RESET}"
    if entry.get("conv"):
        header += f"  {C_DIM}conv:{entry['conv']}{C_RESET}"

    body = entry.get("content", "")
    if len(body) > 500:
        body = body[:500] + " …"
    lines = [header] + [f"      {line}" for line in body.split("\n")[:15]]
    lines.append(f"  {C_DIM}{'─' * 60}{C_RESET}")
    return "\n".join(lines)


def read_entries(log_path: str, last_n: int = 20, role: str | None = None) -> list[dict]:
    """Return the last_n parseable entries, optionally for one role only."""
    path = Path(log_path)
    if not path.exists():
        return []
    entries = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping unreadable wire log line")
                continue
            if role and entry.get("role") != role:
                continue
            entries.append(entry)
    return entries[-last_n:] if last_n > 0 else entries


def live_tap(log_path: str, follow: bool = True, last_n: int = 20,
             role: str | None = None, raw: bool = False):
    """Print recent wire traffic, then keep printing new lines (tail -f)."""
    path = Path(log_path)
    if not path.exists():
        print(f"  ✗  No wire log found at {path}")
        print("     Send a message first: partyline jack")
        return

    for entry in read_entries(log_path, last_n=last_n, role=role):
        print(format_entry(entry, raw=raw))

    if not follow:
        return

    if not raw:
        print(f"\n  {C_DIM}[listening... Ctrl+C to hang up]{C_RESET}\n")
    try:
        with open(path, encoding="utf-8") as f:
            f.seek(0, 2)
            while True:
                line = f.readline()
                if not line:
                    time.sleep(0.2)
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if role and entry.get("role") != role:
                    continue
                print(format_entry(entry, raw=raw))
    except KeyboardInterrupt:
        if not raw:
            print(f"\n  {C_DIM}[line disconnected]{C_RESET}")
