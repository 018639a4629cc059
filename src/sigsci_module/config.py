"""Module configuration -- how to reach the agent and when to talk to it.

One ModuleConfig is built at process start (defaults merged with any
overrides) and handed to every RequestSession. It is frozen: sessions
running concurrently all read the same instance, so nothing may change it
after handoff. Derive a new config with dataclasses.replace() instead.

Defaults:
    socket_family               AF_UNIX
    socket_address              /var/run/sigsci.sock
    socket_port                 0 (only used for AF_INET / AF_INET6)
    read_timeout_microseconds   100000 (fail open past this)
    write_timeout_microseconds  100000
    max_post_size               100000 (bodies this big or bigger are skipped)
    body_methods                POST, PUT, PATCH
    anomaly_size                524288 bytes
    anomaly_duration            1000 ms
"""
from __future__ import annotations

import socket
from dataclasses import dataclass, field, fields
from typing import Any, Mapping

DEFAULT_SOCKET_ADDRESS = "/var/run/sigsci.sock"
DEFAULT_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True, slots=True)
class ModuleConfig:
    """Immutable, process-wide settings for the agent client."""
    socket_family: int = socket.AF_UNIX
    socket_address: str = DEFAULT_SOCKET_ADDRESS
    socket_port: int = 0
    read_timeout_microseconds: int = 100_000
    write_timeout_microseconds: int = 100_000
    max_post_size: int = 100_000
    body_methods: frozenset[str] = field(default=DEFAULT_BODY_METHODS)
    anomaly_size: int = 524_288
    anomaly_duration: int = 1_000

    def __post_init__(self) -> None:
        """Validate ranges and normalize body_methods to an upper-case frozenset."""
        if self.read_timeout_microseconds <= 0 or self.write_timeout_microseconds <= 0:
            raise ValueError("Socket timeouts must be positive")
        if self.max_post_size < 0:
            raise ValueError("max_post_size must be non-negative")
        if self.anomaly_size < 0 or self.anomaly_duration < 0:
            raise ValueError("Anomaly thresholds must be non-negative")
        if not 0 <= self.socket_port <= 65535:
            raise ValueError(f"Invalid socket_port: {self.socket_port}")
        # frozen=True blocks normal assignment, so go through object.__setattr__
        object.__setattr__(
            self, "body_methods", frozenset(m.upper() for m in self.body_methods)
        )

    @classmethod
    def from_overrides(
        cls, overrides: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> ModuleConfig:
        """Factory: defaults merged with a partial set of overrides.

        Accepts a mapping, keyword arguments, or both (keywords win).
        Raises ValueError for keys that are not config fields.
        """
        merged: dict[str, Any] = dict(overrides or {})
        merged.update(kwargs)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**merged)

    @property
    def read_timeout(self) -> float:
        """Receive timeout in seconds."""
        return self.read_timeout_microseconds / 1_000_000

    @property
    def write_timeout(self) -> float:
        """Send timeout in seconds."""
        return self.write_timeout_microseconds / 1_000_000

    @property
    def address(self) -> str | tuple[str, int]:
        """Connect target for the configured family."""
        if self.socket_family == socket.AF_UNIX:
            return self.socket_address
        return (self.socket_address, self.socket_port)
