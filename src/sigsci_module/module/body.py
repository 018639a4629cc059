"""Which request bodies get forwarded to the agent.

A body is read only when every check passes:
    1. method is in config.body_methods
    2. Content-Length is present, an integer, >= 0 and < max_post_size
    3. Content-Type looks like something the agent can inspect

Failing a check is not an error; the body is simply left out.
"""
from __future__ import annotations

from sigsci_module.config import ModuleConfig

# Content-Type substrings (anywhere) and prefixes the agent inspects
_TYPE_SUBSTRINGS = ("application/x-www-form-urlencoded", "json", "javascript", "xml")
_TYPE_PREFIXES = ("multipart/form-data", "application/graphql")


def parse_content_length(value: str | None) -> int | None:
    """Content-Length as an int, or None if missing or not numeric."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def is_inspectable_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    ctype = content_type.lower()
    return ctype.startswith(_TYPE_PREFIXES) or any(s in ctype for s in _TYPE_SUBSTRINGS)


def should_read_body(
    config: ModuleConfig,
    method: str,
    content_length: str | None,
    content_type: str | None,
) -> bool:
    """True when the body should be captured and sent with PreRequest."""
    if method.upper() not in config.body_methods:
        return False
    length = parse_content_length(content_length)
    if length is None or length < 0 or length >= config.max_post_size:
        return False
    return is_inspectable_type(content_type)
