"""Domain model for sigsci-module.

Re-exports the public records:
    from sigsci_module.domain import AgentDecision, RequestMetadata, ResponseObservation
"""
from sigsci_module.domain.decision import AgentDecision
from sigsci_module.domain.request import (
    RequestMetadata,
    ResponseObservation,
    filter_headers,
)
from sigsci_module.domain.types import (
    MODULE_VERSION,
    NO_DECISION,
    NO_REQUEST_ID,
    REDIRECT_HEADER,
    TAGS_HEADER,
    Header,
    HeaderList,
    Payload,
    RequestId,
)

__all__ = [
    "AgentDecision",
    "RequestMetadata",
    "ResponseObservation",
    "filter_headers",
    "MODULE_VERSION",
    "NO_DECISION",
    "NO_REQUEST_ID",
    "REDIRECT_HEADER",
    "TAGS_HEADER",
    "Header",
    "HeaderList",
    "Payload",
    "RequestId",
]
