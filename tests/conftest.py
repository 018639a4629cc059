"""Shared fixtures: a fake agent listening on a real TCP socket.

The fake speaks the same MessagePack-RPC envelopes as the real agent:
it reads one call, hands (method, payload) to a handler, and writes the
handler's reply back before closing the connection (one call per
connection, matching the client).
"""
from __future__ import annotations

import socket
import threading
from typing import Any, Callable

import msgpack
import pytest

from sigsci_module.config import ModuleConfig

Handler = Callable[[str, dict[str, Any]], Any]


def ok_reply(result: dict[str, Any] | None = None) -> list[Any]:
    """A well-formed reply envelope."""
    return [1, 0, None, result or {}]


class FakeAgent:
    """Threaded accept loop that records every call it receives.

    handler returns either a reply envelope (packed here) or raw bytes
    (sent as-is, for malformed-reply tests).
    """

    def __init__(self, handler: Handler | None = None) -> None:
        self._handler = handler or (lambda method, payload: ok_reply())
        self._server_socket: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._running = False
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.port = 0

    def start(self) -> None:
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.bind(("127.0.0.1", 0))
        self._server_socket.listen(16)
        self._server_socket.settimeout(0.2)
        self.port = self._server_socket.getsockname()[1]
        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
        if self._server_socket:
            self._server_socket.close()

    def config(self, **overrides: Any) -> ModuleConfig:
        """Client config pointing at this agent, with test-friendly timeouts."""
        return ModuleConfig.from_overrides(
            {"read_timeout_microseconds": 1_000_000, "write_timeout_microseconds": 1_000_000},
            socket_family=socket.AF_INET,
            socket_address="127.0.0.1",
            socket_port=self.port,
            **overrides,
        )

    def methods(self) -> list[str]:
        with self._lock:
            return [method for method, _ in self.calls]

    def _accept_loop(self) -> None:
        while self._running:
            try:
                conn, _ = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with conn:
                self._handle(conn)

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(2.0)
        unpacker = msgpack.Unpacker(raw=False)
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                return
            unpacker.feed(chunk)
            try:
                call = unpacker.unpack()
                break
            except msgpack.OutOfData:
                continue

        _, _, method, params = call
        payload = params[0] if params else {}
        with self._lock:
            self.calls.append((method, payload))
        reply = self._handler(method, payload)
        if not isinstance(reply, bytes):
            reply = msgpack.packb(reply, use_bin_type=True)
        conn.sendall(reply)


@pytest.fixture()
def fake_agent():
    """Factory that starts a FakeAgent with the given handler.

    Every agent started is stopped after the test.
    """
    agents: list[FakeAgent] = []

    def _create(handler: Handler | None = None) -> FakeAgent:
        agent = FakeAgent(handler)
        agent.start()
        agents.append(agent)
        return agent

    yield _create

    for agent in agents:
        agent.stop()
