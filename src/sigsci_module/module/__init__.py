"""Host-facing side: providers, body policy, the request session, and
the wrappers that drive it (ProtectedRequest, SigSciMiddleware).
"""
from sigsci_module.module.body import should_read_body
from sigsci_module.module.middleware import SigSciMiddleware
from sigsci_module.module.provider import (
    MetadataProvider,
    WSGIEnvironProvider,
    headers_from_environ,
    parse_header_lines,
    request_headers_of,
)
from sigsci_module.module.session import (
    VALID_TRANSITIONS,
    CallResult,
    InvalidTransition,
    RequestSession,
    SessionState,
)
from sigsci_module.module.simple import ProtectedRequest

__all__ = [
    "should_read_body",
    "SigSciMiddleware",
    "MetadataProvider",
    "WSGIEnvironProvider",
    "headers_from_environ",
    "parse_header_lines",
    "request_headers_of",
    "VALID_TRANSITIONS",
    "CallResult",
    "InvalidTransition",
    "RequestSession",
    "SessionState",
    "ProtectedRequest",
]
