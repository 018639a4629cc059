"""AgentClient: codec + transport composed into named remote calls.

One logical attempt per send(); the transport already retried whatever
was worth retrying. Failures propagate as AgentError subclasses tagged
with their stage. Deciding what a failure means for the request (fail
open) is the session's job, not this class's.
"""
from __future__ import annotations

import logging
import time

from sigsci_module.config import ModuleConfig
from sigsci_module.domain.types import Payload
from sigsci_module.rpc.codec import decode_reply, encode_call
from sigsci_module.rpc.transport import SocketTransport

log = logging.getLogger(__name__)

METHOD_PREFIX = "RPC."
PRE_REQUEST = "RPC.PreRequest"
UPDATE_REQUEST = "RPC.UpdateRequest"
POST_REQUEST = "RPC.PostRequest"


class AgentClient:
    """Synchronous MessagePack-RPC client for the local agent.

    Usage:
        client = AgentClient(ModuleConfig())
        result = client.pre_request(metadata.to_payload())

    Safe to share across sessions: it holds only the config and the
    transport, and every call opens its own socket.
    """

    def __init__(
        self,
        config: ModuleConfig | None = None,
        transport: SocketTransport | None = None,
    ) -> None:
        self._config = config or ModuleConfig()
        self._transport = transport or SocketTransport(self._config)

    @property
    def config(self) -> ModuleConfig:
        return self._config

    def send(self, method: str, payload: Payload) -> Payload:
        """Call method on the agent and return the result map.

        method may be given with or without the "RPC." prefix.

        Raises:
            TransportError, ProtocolError, ApplicationError
        """
        if not method.startswith(METHOD_PREFIX):
            method = METHOD_PREFIX + method
        start_ns = time.perf_counter_ns()
        request = encode_call(method, payload)
        raw = self._transport.call(request)
        result = decode_reply(raw)
        log.debug(
            "%s ok: %d bytes out, %d bytes in, %.2f ms",
            method,
            len(request),
            len(raw),
            (time.perf_counter_ns() - start_ns) / 1_000_000,
        )
        return result

    def pre_request(self, payload: Payload) -> Payload:
        return self.send(PRE_REQUEST, payload)

    def update_request(self, payload: Payload) -> Payload:
        return self.send(UPDATE_REQUEST, payload)

    def post_request(self, payload: Payload) -> Payload:
        return self.send(POST_REQUEST, payload)
