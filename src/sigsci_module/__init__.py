"""sigsci-module: fail-open agent client for request inspection.

    from sigsci_module import ModuleConfig, ProtectedRequest, WSGIEnvironProvider

    with ProtectedRequest(WSGIEnvironProvider(environ)) as sigsci:
        if sigsci.block():
            ...
"""
from sigsci_module.config import ModuleConfig
from sigsci_module.domain import AgentDecision, RequestMetadata, ResponseObservation
from sigsci_module.module import (
    CallResult,
    MetadataProvider,
    ProtectedRequest,
    RequestSession,
    SessionState,
    SigSciMiddleware,
    WSGIEnvironProvider,
)
from sigsci_module.rpc import (
    AgentClient,
    AgentError,
    ApplicationError,
    ProtocolError,
    TransportError,
)

__version__ = "1.0.0"

__all__ = [
    "ModuleConfig",
    "AgentDecision",
    "RequestMetadata",
    "ResponseObservation",
    "CallResult",
    "MetadataProvider",
    "ProtectedRequest",
    "RequestSession",
    "SessionState",
    "SigSciMiddleware",
    "WSGIEnvironProvider",
    "AgentClient",
    "AgentError",
    "ApplicationError",
    "ProtocolError",
    "TransportError",
]
