"""Per-request records: what came in, and what went out.

RequestMetadata is an immutable snapshot taken once at PreRequest time.
ResponseObservation is a small mutable accumulator the host updates while
the response is written, then read once at PostRequest.

Neither is shared between requests.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sigsci_module.domain.types import Header, HeaderList, Payload


def filter_headers(headers: Iterable[Header]) -> list[list[str]]:
    """Render header pairs for the wire: [[name, value], ...], order kept."""
    return [[name, value] for name, value in headers]


@dataclass(frozen=True, slots=True)
class RequestMetadata:
    """Immutable snapshot of one inbound request."""
    module_version: str
    server_version: str
    server_flavor: str
    server_name: str
    timestamp: int                  # request time, Unix epoch seconds
    now_millis: int                 # wall clock when the snapshot was taken
    start_monotonic: float          # time.monotonic() at PreRequest
    remote_addr: str
    method: str
    scheme: str
    uri: str
    protocol: str
    headers: tuple[Header, ...] = field(default_factory=tuple)
    body: bytes | None = None

    def to_payload(self, include_body: bool = True) -> Payload:
        """Wire map for PreRequest / PostRequest.

        PostBody is present only when a body was captured and include_body
        is set. PostRequest reports never resend the body.
        """
        payload: Payload = {
            "ModuleVersion": self.module_version,
            "ServerVersion": self.server_version,
            "ServerFlavor": self.server_flavor,
            "ServerName": self.server_name,
            "Timestamp": self.timestamp,
            "NowMillis": self.now_millis,
            "RemoteAddr": self.remote_addr,
            "Method": self.method,
            "Scheme": self.scheme,
            "URI": self.uri,
            "Protocol": self.protocol,
            "HeadersIn": filter_headers(self.headers),
        }
        if include_body and self.body is not None:
            payload["PostBody"] = self.body
        return payload


@dataclass(slots=True)
class ResponseObservation:
    """Mutable accumulator for the outbound response.

    The host's output hook calls count() for every chunk flushed to the
    client. status_code and headers are filled in once they are known.
    elapsed_ms is set by the session when the observation is taken.
    """
    status_code: int = 0
    size: int = 0
    elapsed_ms: int = 0
    headers: HeaderList = field(default_factory=list)

    def count(self, chunk: bytes) -> bytes:
        """Add len(chunk) to the byte count. Returns the chunk unchanged."""
        self.size += len(chunk)
        return chunk

    def is_anomalous(self, size_threshold: int, duration_threshold: int) -> bool:
        """Any of: status >= 300, size >= threshold, duration >= threshold."""
        return (
            self.status_code >= 300
            or self.size >= size_threshold
            or self.elapsed_ms >= duration_threshold
        )
