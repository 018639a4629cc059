"""AgentDecision -- what the agent said about one request.

Built from the PreRequest reply map:
    WAFResponse     int, the status the host should answer with
    RequestID       str, set when the agent is tracking this request
    RequestHeaders  [[name, value], ...], free-form metadata

The decision is frozen. A session replaces it wholesale after a
successful PreRequest and never touches it again. Before that (or when
PreRequest failed) the session holds AgentDecision.none(), whose
response code is -1: a missing decision never blocks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from sigsci_module.domain.types import (
    BLOCK_MAX,
    BLOCK_MIN,
    NO_DECISION,
    NO_REQUEST_ID,
    REDIRECT_HEADER,
    REDIRECT_MAX,
    TAGS_HEADER,
    Header,
    HeaderList,
)


def _text(value: Any) -> str:
    """msgpack bin arrives as bytes; decode it rather than repr it."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _coerce_headers(raw: Any) -> HeaderList:
    """Turn the agent's [[name, value], ...] into a list of str tuples.

    Anything that is not a list is ignored, and malformed entries (not a
    pair) are skipped rather than failing the whole decision.
    """
    headers: HeaderList = []
    if not isinstance(raw, (list, tuple)):
        return headers
    for item in raw:
        if isinstance(item, (list, tuple)) and len(item) == 2:
            headers.append((_text(item[0]), _text(item[1])))
    return headers


def _coerce_request_id(raw: Any) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return NO_REQUEST_ID
    return raw


@dataclass(frozen=True, slots=True)
class AgentDecision:
    """Immutable result of a successful PreRequest call."""
    response_code: int = NO_DECISION
    request_id: str = NO_REQUEST_ID
    headers: tuple[Header, ...] = field(default_factory=tuple)

    @classmethod
    def none(cls) -> AgentDecision:
        """The 'no decision received' sentinel."""
        return cls()

    @classmethod
    def from_result(cls, result: Mapping[str, Any]) -> AgentDecision:
        """Factory: build from a decoded PreRequest result map.

        Missing keys fall back to the sentinels. A WAFResponse that is not
        an integer, or a RequestID that is not a string, is treated as
        missing.
        """
        code = result.get("WAFResponse", NO_DECISION)
        try:
            code = int(code)
        except (TypeError, ValueError, OverflowError):
            code = NO_DECISION
        return cls(
            response_code=code,
            request_id=_coerce_request_id(result.get("RequestID")),
            headers=tuple(_coerce_headers(result.get("RequestHeaders"))),
        )

    def blocks(self) -> bool:
        """True iff the response code is in [300, 599]."""
        return BLOCK_MIN <= self.response_code <= BLOCK_MAX

    def has_request_id(self) -> bool:
        return self.request_id != NO_REQUEST_ID

    def meta(self) -> dict[str, str]:
        """Agent headers as a mapping. Later duplicates win."""
        return {name: value for name, value in self.headers}

    def tags(self) -> list[str]:
        """Detected tags from the X-SigSci-Tags header, [] if absent."""
        value = self.meta().get(TAGS_HEADER)
        if not value:
            return []
        return [tag for tag in value.split(",") if tag]

    def redirect(self) -> str | None:
        """Redirect target, if the agent asked for one."""
        return self.meta().get(REDIRECT_HEADER)

    def fold_redirect(self, headers: Iterable[Header]) -> HeaderList:
        """Return headers with 'location' set to the agent's redirect target.

        Applies only when the agent sent X-Sigsci-Redirect and its response
        code is <= 399. Any existing location header (any case) is replaced.
        """
        out = list(headers)
        target = self.redirect()
        if target is None or self.response_code > REDIRECT_MAX:
            return out
        out = [(name, value) for name, value in out if name.lower() != "location"]
        out.append(("location", target))
        return out
