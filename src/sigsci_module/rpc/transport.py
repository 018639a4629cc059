"""One short-lived stream socket per agent call.

Call sequence:
    1. socket(family, SOCK_STREAM)
    2. SO_SNDTIMEO / SO_RCVTIMEO from the config (independent per direction)
    3. connect
    4. send the whole request, retrying "would block" up to 3 attempts
    5. one recv of up to READ_BUFFER_SIZE, same retry policy
    6. close, always

The socket stays in blocking mode; the kernel timeouts make a stalled
send/recv fail with EAGAIN, which Python raises as BlockingIOError. A
freshly connected local socket can also report EAGAIN before the agent
has answered, so that one error is retried. Anything else is fatal
straight away. Worst case per direction is MAX_ATTEMPTS x timeout.

There is no pooling: a stuck agent can't poison a shared connection.
"""
from __future__ import annotations

import logging
import socket
import struct
from typing import Callable

from sigsci_module.config import ModuleConfig
from sigsci_module.rpc.errors import TransportError

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
READ_BUFFER_SIZE = 1024   # replies are always well below 1 KB

SocketFactory = Callable[[int, int], socket.socket]


def _timeval(microseconds: int) -> bytes:
    """Pack a struct timeval for SO_SNDTIMEO / SO_RCVTIMEO."""
    seconds, micros = divmod(microseconds, 1_000_000)
    return struct.pack("ll", seconds, micros)


class SocketTransport:
    """Executes one request/reply exchange with the agent.

    Args:
        config: where the agent listens and the per-direction timeouts.
        socket_factory: called as factory(family, SOCK_STREAM). Tests pass
            a fake here to script would-block sequences.
    """

    def __init__(
        self,
        config: ModuleConfig,
        socket_factory: SocketFactory = socket.socket,
    ) -> None:
        self._config = config
        self._socket_factory = socket_factory

    def call(self, request: bytes) -> bytes:
        """Send request, return the raw reply bytes.

        Raises:
            TransportError: stage is create, connect, send or read
        """
        try:
            sock = self._socket_factory(self._config.socket_family, socket.SOCK_STREAM)
        except OSError as exc:
            raise TransportError.from_os_error("create", exc) from exc

        try:
            self._connect(sock)
            self._send_all(sock, request)
            return self._recv(sock)
        finally:
            try:
                sock.close()
            except OSError:
                pass

    def _connect(self, sock: socket.socket) -> None:
        """Apply both timeouts, then connect.

        Both steps report stage "connect"; a failed setsockopt is told
        apart by its "setsockopt" message prefix.
        """
        try:
            sock.setsockopt(
                socket.SOL_SOCKET,
                socket.SO_SNDTIMEO,
                _timeval(self._config.write_timeout_microseconds),
            )
            sock.setsockopt(
                socket.SOL_SOCKET,
                socket.SO_RCVTIMEO,
                _timeval(self._config.read_timeout_microseconds),
            )
        except OSError as exc:
            raise TransportError.from_os_error("connect", exc, context="setsockopt") from exc
        try:
            sock.connect(self._config.address)
        except OSError as exc:
            raise TransportError.from_os_error("connect", exc) from exc

    def _send_all(self, sock: socket.socket, data: bytes) -> None:
        """Write all of data within MAX_ATTEMPTS send() calls.

        A short write resumes from the first unsent byte on the next
        attempt, so the framing stays intact.
        """
        view = memoryview(data)
        sent = 0
        last_blocked: BlockingIOError | None = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                sent += sock.send(view[sent:])
            except BlockingIOError as exc:
                last_blocked = exc
                log.debug("send would block (attempt %d/%d)", attempt, MAX_ATTEMPTS)
                continue
            except OSError as exc:
                raise TransportError.from_os_error("send", exc) from exc
            if sent >= len(data):
                return

        if sent == 0 and last_blocked is not None:
            raise TransportError.from_os_error("send", last_blocked)
        raise TransportError(
            "send", f"short write: {sent} of {len(data)} bytes after {MAX_ATTEMPTS} attempts"
        )

    def _recv(self, sock: socket.socket) -> bytes:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                data = sock.recv(READ_BUFFER_SIZE)
            except BlockingIOError as exc:
                log.debug("read would block (attempt %d/%d)", attempt, MAX_ATTEMPTS)
                if attempt == MAX_ATTEMPTS:
                    raise TransportError.from_os_error("read", exc) from exc
                continue
            except OSError as exc:
                raise TransportError.from_os_error("read", exc) from exc
            if not data:
                raise TransportError("read", "agent closed the connection without replying")
            return data
        raise TransportError("read", f"no reply after {MAX_ATTEMPTS} attempts")
