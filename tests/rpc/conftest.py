"""Fixtures for rpc tests: a scripted fake socket for the transport.

FakeSocket replays a script of outcomes for send() and recv() so retry
paths can be exercised without real timeouts:
    send script items: int (bytes accepted), None (accept all), or an exception
    recv script items: bytes to return, or an exception
"""
from __future__ import annotations

import errno
import os
from typing import Any

import pytest

from sigsci_module.config import ModuleConfig


def would_block() -> BlockingIOError:
    return BlockingIOError(errno.EAGAIN, os.strerror(errno.EAGAIN))


class FakeSocket:
    def __init__(
        self,
        send_script: list[Any] | None = None,
        recv_script: list[Any] | None = None,
        connect_error: OSError | None = None,
        option_error: OSError | None = None,
    ) -> None:
        self.send_script = list(send_script or [])
        self.recv_script = list(recv_script or [])
        self.connect_error = connect_error
        self.option_error = option_error
        self.sent = bytearray()
        self.send_calls = 0
        self.recv_calls = 0
        self.options: dict[int, bytes] = {}
        self.connected_to: Any = None
        self.closed = False

    def setsockopt(self, level: int, option: int, value: bytes) -> None:
        if self.option_error is not None:
            raise self.option_error
        self.options[option] = value

    def connect(self, address: Any) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_to = address

    def send(self, data: bytes) -> int:
        self.send_calls += 1
        step = self.send_script.pop(0) if self.send_script else None
        if isinstance(step, BaseException):
            raise step
        accepted = len(data) if step is None else min(step, len(data))
        self.sent += bytes(data[:accepted])
        return accepted

    def recv(self, bufsize: int) -> bytes:
        self.recv_calls += 1
        step = self.recv_script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step[:bufsize]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def unix_config() -> ModuleConfig:
    return ModuleConfig(socket_address="/tmp/sigsci-test.sock")


@pytest.fixture()
def socket_factory():
    """Returns (factory, holder): factory hands out the socket in holder['sock']."""
    holder: dict[str, FakeSocket] = {}

    def _factory(family: int, kind: int) -> FakeSocket:
        holder["family"] = family
        return holder["sock"]

    return _factory, holder
