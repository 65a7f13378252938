"""
Config loader for partyline.
Reads config.yaml once at startup. All other modules import from here.
Set PARTYLINE_CONFIG to point at a different file.
"""

import os
import re
import yaml
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

# Fallbacks for keys a trimmed-down config.yaml may leave out
DEFAULTS = {
    "backend": {
        "url": "http://127.0.0.1:8080",
        "path": "/api/chat/stream",
        "model": "llama3.1",
        "timeout": 120,
    },
    "storage": {
        "path": "./data/partyline.db",
        "key": "chatHistory",
    },
    "render": {
        "flush_delay_ms": 80,
    },
    "wiretap": {
        "enabled": True,
        "path": "./data/wire.jsonl",
    },
    "logging": {
        "level": "INFO",
        "file": "./data/partyline.log",
    },
}


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _merge_defaults(raw: dict) -> dict:
    """Fill in missing sections/keys from DEFAULTS (one level deep)."""
    merged = {}
    for section, defaults in DEFAULTS.items():
        merged[section] = {**defaults, **(raw.get(section) or {})}
    for section, value in raw.items():
        if section not in merged:
            merged[section] = value
    return merged


def load_config(path: Path | None = None) -> dict:
    """Load and cache config from YAML file."""
    global _config
    if _config is not None:
        return _config

    env_path = os.environ.get("PARTYLINE_CONFIG")
    config_path = Path(path or env_path or _CONFIG_PATH)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = _merge_defaults(_walk_and_resolve(raw))
    return _config


def get_config() -> dict:
    """Return cached config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the file."""
    global _config
    _config = None
