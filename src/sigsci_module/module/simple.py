"""ProtectedRequest: pre_request on entry, post_request on exit, always.

Usage:
    with ProtectedRequest(provider, config) as sigsci:
        if sigsci.block():
            return reject(sigsci.agent_response_code())
        return handle(request)

The report runs on every way out of the block (normal exit, early
return, exception). Failures are logged, never raised, and the host's
own exception is never swallowed.
"""
from __future__ import annotations

import logging
from types import TracebackType

from sigsci_module.config import ModuleConfig
from sigsci_module.module.provider import MetadataProvider
from sigsci_module.module.session import CallResult, RequestSession
from sigsci_module.rpc.client import AgentClient

log = logging.getLogger(__name__)


class ProtectedRequest:
    """Context manager wrapping one RequestSession."""

    def __init__(
        self,
        provider: MetadataProvider,
        config: ModuleConfig | None = None,
        client: AgentClient | None = None,
        session: RequestSession | None = None,
    ) -> None:
        self.session = session or RequestSession(provider, config=config, client=client)
        self.pre_result: CallResult | None = None
        self.post_result: CallResult | None = None

    def __enter__(self) -> RequestSession:
        self.pre_result = self.session.pre_request()
        if not self.pre_result:
            log.warning("error in prerequest: %s", self.pre_result.error)
        return self.session

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.post_result = self.session.post_request()
        if not self.post_result:
            log.warning("error in postrequest: %s", self.post_result.error)
        return False
