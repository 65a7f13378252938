#!/usr/bin/env python3
"""
PartyLine CLI — everyone on the line, one conversation at a time.

Every command has a phreaker name and a standard alias:

    PHREAKER        STANDARD        WHAT IT DOES
    --------        --------        ----------------------------------
    jack            chat, tui       Open the chat console
    ask             call, once      One-shot question, no history
    tap             log, tail       Watch the wire log
    ring            ping, status    Check the chat endpoint is up
    dump            export          Export chat history to JSON
    flash           info, config    Show config and storage at a glance
    tone            banner          Print the PartyLine banner
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from partyline import __version__

BANNER = r"""
    ╔══════════════════════════════════════════════╗
    ║   ___  ___  ___ _____   __ _    ___ _  _ ___ ║
    ║  | _ \/   \| _ \_   _\ / /| |  |_ _| \| | __|║
    ║  |  _/ /_\ \   / | |  \ \ | |__ | || .` | _| ║
    ║  |_| \_/ \_/_|_\ |_|   \_\|____|___|_|\_|___|║
    ║                                              ║
    ║   Pick up the line.                v""" + __version__ + r"""     ║
    ╚══════════════════════════════════════════════╝
"""


def setup_logging(cfg: dict, console: bool = True):
    """Configure root logging from the `logging` config section."""
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_backend(cfg: dict):
    from partyline.backends.bridge import ChatBridgeBackend

    b_cfg = cfg["backend"]
    return ChatBridgeBackend(
        name="bridge",
        url=b_cfg["url"],
        model=b_cfg.get("model", "llama3.1"),
        timeout=b_cfg.get("timeout", 120),
        stream_path=b_cfg.get("path", "/api/chat/stream"),
    )


def open_store(cfg: dict):
    from partyline.conversations import ConversationStore
    from partyline.storage.slot_store import SlotStore

    s_cfg = cfg["storage"]
    return ConversationStore.open(SlotStore(s_cfg["path"]), key=s_cfg.get("key", "chatHistory"))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_jack(args):
    """Open the chat console."""
    from partyline.config import get_config
    from partyline.session import ChatSession
    from partyline.tui.app import PartyLineApp
    from partyline.wiretap import WireLog

    cfg = get_config()
    setup_logging(cfg, console=False)

    store = open_store(cfg)
    w_cfg = cfg["wiretap"]
    wire = WireLog(w_cfg["path"]) if w_cfg.get("enabled", True) else None
    session = ChatSession(
        store,
        build_backend(cfg),
        flush_delay=cfg["render"].get("flush_delay_ms", 80) / 1000,
        wire=wire,
    )
    try:
        PartyLineApp(store, session).run()
    finally:
        if wire is not None:
            wire.close()


def cmd_ask(args):
    """Ask a single question over the non-streaming endpoint."""
    from partyline.config import get_config

    cfg = get_config()
    setup_logging(cfg)
    backend = build_backend(cfg)
    question = " ".join(args.question)

    result = asyncio.run(backend.forward([{"role": "user", "content": question}]))
    if result.ok:
        print(result.content)
    else:
        print(f"  ✗  {result.error}", file=sys.stderr)
        sys.exit(1)


def cmd_tap(args):
    """Watch the wire log."""
    from partyline.config import get_config
    from partyline.wiretap import live_tap

    log_path = args.log or get_config()["wiretap"]["path"]
    live_tap(
        log_path,
        follow=not args.no_follow,
        last_n=args.last,
        role=args.role,
        raw=args.raw,
    )


def cmd_ring(args):
    """Ping the chat endpoint."""
    from partyline.config import get_config

    cfg = get_config()
    if args.url:
        cfg = {**cfg, "backend": {**cfg["backend"], "url": args.url}}
    backend = build_backend(cfg)

    if asyncio.run(backend.health_check()):
        print(f"  ☎  Ring ring... {backend.url} is UP")
        print(f"  Stream endpoint: {backend.stream_url}")
        print(f"  Model: {backend.model}")
    else:
        print(f"  ✗  Dead line — nothing at {backend.url}")
        sys.exit(1)


def cmd_dump(args):
    """Export chat history to JSON."""
    from partyline.config import get_config

    cfg = get_config()
    setup_logging(cfg)
    store = open_store(cfg)
    data = store.export()

    indent = 2 if args.pretty else None
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)

    total = sum(len(c["messages"]) for c in data["conversations"])
    print(f"  Exported {len(data['conversations'])} conversations ({total} messages) to {args.output}")


def cmd_flash(args):
    """Show config and storage at a glance."""
    from partyline.config import get_config

    cfg = get_config()
    store = open_store(cfg)
    stats = store.slots.get_stats()
    active = store.active_conversation

    print(BANNER)
    print("  Backend")
    print(f"    url:      {cfg['backend']['url']}{cfg['backend']['path']}")
    print(f"    model:    {cfg['backend']['model']}")
    print(f"    timeout:  {cfg['backend']['timeout']}s")
    print("  Storage")
    print(f"    file:     {cfg['storage']['path']}  (slot '{cfg['storage']['key']}')")
    print(f"    size:     {stats['chars']:,} chars, last write {stats['last_write'] or 'never'}")
    print(f"    chats:    {len(store.conversations)}")
    print(f"    active:   {active.title if active else '(none)'}")
    print("  Render")
    print(f"    flush:    {cfg['render']['flush_delay_ms']}ms")
    print("  Wiretap")
    print(f"    enabled:  {cfg['wiretap']['enabled']}  ({cfg['wiretap']['path']})")


def cmd_tone(args):
    """Print the banner."""
    print(BANNER)


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names (phreaker + standard)."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="partyline",
        description="PartyLine — multi-conversation chat for a local LLM.",
        epilog=(
            "Each command has a phreaker name and standard aliases.\n"
            "Example: 'partyline jack' and 'partyline chat' do the same thing."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"partyline {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    _add_command(sub, ["jack", "chat", "tui"], "Open the chat console", cmd_jack)

    def setup_ask(p):
        p.add_argument("question", nargs="+", help="Question to ask")

    _add_command(sub, ["ask", "call", "once"],
                 "One-shot question, not saved to history", cmd_ask, setup_ask)

    def setup_tap(p):
        p.add_argument("--log", default=None, help="Path to wire.jsonl (default: from config)")
        p.add_argument("--last", "-n", type=int, default=20, help="Show last N entries before following")
        p.add_argument("--role", "-r", choices=["user", "assistant", "error"], default=None,
                       help="Filter by role")
        p.add_argument("--no-follow", action="store_true", help="Don't follow, just show last entries")
        p.add_argument("--raw", action="store_true", help="Raw JSONL output, no formatting")

    _add_command(sub, ["tap", "log", "tail"], "Watch the wire log", cmd_tap, setup_tap)

    def setup_ring(p):
        p.add_argument("--url", "-u", default=None, help="Chat bridge URL (default: from config)")

    _add_command(sub, ["ring", "ping", "status"], "Check the chat endpoint is up", cmd_ring, setup_ring)

    def setup_dump(p):
        p.add_argument("--output", "-o", default="conversations_export.json", help="Output file")
        p.add_argument("--pretty", action="store_true", help="Pretty-print JSON")

    _add_command(sub, ["dump", "export"], "Export chat history to JSON", cmd_dump, setup_dump)

    _add_command(sub, ["flash", "info", "config"], "Show config and storage at a glance", cmd_flash)
    _add_command(sub, ["tone", "banner"], "Print the PartyLine banner", cmd_tone)
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        cmd_tone(args)
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
