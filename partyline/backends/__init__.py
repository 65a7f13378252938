"""
Chat endpoint backends for PartyLine.
"""
from partyline.backends.base import BaseBackend, BackendResponse
from partyline.backends.bridge import ChatBridgeBackend

__all__ = [
    "BaseBackend",
    "BackendResponse",
    "ChatBridgeBackend",
]
