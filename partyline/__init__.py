"""PartyLine — a multi-conversation terminal client for a local LLM chat bridge."""

__version__ = "0.3.0"
