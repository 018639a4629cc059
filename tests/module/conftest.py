"""Fixtures for session, wrapper and middleware tests.

FakeProvider is a structured MetadataProvider (it has request_headers()).
RecordingClient is an AgentClient whose send() records calls and replays
scripted results instead of opening a socket.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from sigsci_module.config import ModuleConfig
from sigsci_module.rpc.client import AgentClient


@dataclass
class FakeProvider:
    method_: str = "GET"
    uri_: str = "/index.html?q=1"
    headers: list[tuple[str, str]] = field(
        default_factory=lambda: [("Host", "example.com"), ("User-Agent", "pytest")]
    )
    body: bytes = b""
    length: str | None = None
    ctype: str | None = None
    status: int = 200
    size: int = 0
    out_headers: list[tuple[str, str]] = field(default_factory=list)
    body_reads: list[int] = field(default_factory=list)

    def method(self) -> str:
        return self.method_

    def uri(self) -> str:
        return self.uri_

    def protocol(self) -> str:
        return "HTTP/1.1"

    def scheme(self) -> str:
        return "https"

    def remote_addr(self) -> str:
        return "10.0.0.5"

    def request_time(self) -> int:
        return 1_700_000_000

    def server_name(self) -> str:
        return "example.com"

    def server_version(self) -> str:
        return "test-server/1.0"

    def request_headers(self) -> list[tuple[str, str]]:
        return list(self.headers)

    def content_length(self) -> str | None:
        return self.length

    def content_type(self) -> str | None:
        return self.ctype

    def read_body(self, max_size: int) -> bytes | None:
        self.body_reads.append(max_size)
        return self.body[:max_size]

    def response_code(self) -> int:
        return self.status

    def response_size(self) -> int:
        return self.size

    def response_headers(self) -> list[tuple[str, str]]:
        return list(self.out_headers)


class RecordingClient(AgentClient):
    """AgentClient that never touches the network.

    replies maps full method name -> result dict, or an exception to raise.
    """

    def __init__(
        self,
        config: ModuleConfig | None = None,
        replies: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(config or ModuleConfig())
        self.replies = replies or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def send(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, payload))
        reply = self.replies.get(method, {})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    def payload(self, method: str) -> dict[str, Any]:
        return next(p for m, p in self.calls if m == method)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: int) -> None:
        self.now += ms / 1000


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
