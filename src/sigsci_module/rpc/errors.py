"""Error taxonomy for agent RPC calls.

Every failure carries the stage it happened in so a log line says where
the call broke:

    create, connect, send, read   -> TransportError
    encode, decode, validate      -> ProtocolError
    validate (agent error slot)   -> ApplicationError

All of these are raised inside the rpc layer and caught by the session at
the lifecycle boundary. None of them may reach the host.
"""
from __future__ import annotations

import os
from typing import Any


class AgentError(Exception):
    """Base for anything that went wrong talking to the agent."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message


class TransportError(AgentError):
    """Socket create/connect/send/read failed, including exhausted retries."""

    def __init__(self, stage: str, message: str, errno: int | None = None) -> None:
        if errno is not None:
            message = f"[{errno}] {message}"
        super().__init__(stage, message)
        self.errno = errno

    @classmethod
    def from_os_error(cls, stage: str, exc: OSError, context: str = "") -> TransportError:
        """Wrap an OSError as '<stage>: [errno] strerror'.

        context, when given, goes in front of strerror:
        '<stage>: [errno] <context>: strerror'.
        """
        prefix = f"{context}: " if context else ""
        if exc.errno is None:
            return cls(stage, prefix + (str(exc) or type(exc).__name__))
        return cls(stage, prefix + (exc.strerror or os.strerror(exc.errno)), errno=exc.errno)


class ProtocolError(AgentError):
    """Reply could not be decoded or is not a valid RPC reply."""


class ApplicationError(AgentError):
    """Agent answered with a value in the reply's error slot."""

    def __init__(self, error: Any) -> None:
        super().__init__("validate", f"Error RPC Response: {error}")
        self.error = error
