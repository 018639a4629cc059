"""Agent RPC: MessagePack envelopes over a short-lived local socket.

Layers, bottom up:
    errors     -- AgentError taxonomy, every error tagged with its stage
    codec      -- call/reply envelopes and reply validation
    transport  -- one socket per call, bounded would-block retries
    client     -- the three named calls the module makes
"""
from sigsci_module.rpc.client import (
    POST_REQUEST,
    PRE_REQUEST,
    UPDATE_REQUEST,
    AgentClient,
)
from sigsci_module.rpc.codec import decode_reply, encode_call, validate_reply
from sigsci_module.rpc.errors import (
    AgentError,
    ApplicationError,
    ProtocolError,
    TransportError,
)
from sigsci_module.rpc.transport import MAX_ATTEMPTS, READ_BUFFER_SIZE, SocketTransport

__all__ = [
    "AgentClient",
    "PRE_REQUEST",
    "UPDATE_REQUEST",
    "POST_REQUEST",
    "encode_call",
    "decode_reply",
    "validate_reply",
    "AgentError",
    "ApplicationError",
    "ProtocolError",
    "TransportError",
    "MAX_ATTEMPTS",
    "READ_BUFFER_SIZE",
    "SocketTransport",
]
