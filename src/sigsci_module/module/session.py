"""RequestSession: the pre/post lifecycle for one request.

State transitions:
    IDLE -> AWAITING_DECISION -> DECIDED -> RESPONSE_OBSERVED -> REPORTED -> DONE
                                                             \\-> DONE (nothing to report)

pre_request() always lands in DECIDED, whether or not the agent
answered. A failed PreRequest leaves the decision at the -1 sentinel,
and block() is False for it: the request is allowed (fail open).

post_request() picks one of two reports:
    - the agent issued a RequestID -> RPC.UpdateRequest, always
    - no RequestID -> RPC.PostRequest, only for anomalies
      (status >= 300, size >= anomaly_size, duration >= anomaly_duration)

Nothing here raises into the host. Both lifecycle calls return a
CallResult; AgentError, out-of-order calls and errors from the provider
become failed results. AgentError is expected and logged at debug; any
other exception is logged with its traceback.
"""
from __future__ import annotations

import logging
import platform
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from sigsci_module.config import ModuleConfig
from sigsci_module.domain.decision import AgentDecision
from sigsci_module.domain.request import (
    RequestMetadata,
    ResponseObservation,
    filter_headers,
)
from sigsci_module.domain.types import MODULE_VERSION, HeaderList, Payload
from sigsci_module.module.body import parse_content_length, should_read_body
from sigsci_module.module.provider import MetadataProvider, request_headers_of
from sigsci_module.rpc.client import (
    POST_REQUEST,
    PRE_REQUEST,
    UPDATE_REQUEST,
    AgentClient,
)
from sigsci_module.rpc.errors import AgentError

log = logging.getLogger(__name__)

SERVER_FLAVOR = platform.python_version()


class SessionState(Enum):
    IDLE = auto()
    AWAITING_DECISION = auto()
    DECIDED = auto()
    RESPONSE_OBSERVED = auto()
    REPORTED = auto()
    DONE = auto()


class InvalidTransition(Exception):
    """Raised when a lifecycle call arrives in the wrong state."""


VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.AWAITING_DECISION},
    SessionState.AWAITING_DECISION: {SessionState.DECIDED},
    SessionState.DECIDED: {SessionState.RESPONSE_OBSERVED},
    SessionState.RESPONSE_OBSERVED: {SessionState.REPORTED, SessionState.DONE},
    SessionState.REPORTED: {SessionState.DONE},
    SessionState.DONE: set(),
}


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


@dataclass(frozen=True, slots=True)
class CallResult:
    """Outcome of a lifecycle call. Truthy on success.

    method is the RPC that was sent, or None when no call was made.
    """
    ok: bool
    error: str = ""
    method: str | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, method: str | None = None) -> CallResult:
        return cls(ok=True, method=method)

    @classmethod
    def failure(cls, error: str, method: str | None = None) -> CallResult:
        return cls(ok=False, error=error, method=method)


class RequestSession:
    """Agent decision and report for exactly one request.

    Args:
        provider: supplies request/response fields from the host.
        config: module settings (defaults if omitted).
        client: agent client; one is built from config if omitted.
        clock: monotonic seconds, for elapsed time.
        wall_clock: epoch seconds, for NowMillis.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        config: ModuleConfig | None = None,
        client: AgentClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._config = config or (client.config if client else ModuleConfig())
        self._client = client or AgentClient(self._config)
        self._clock = clock
        self._wall_clock = wall_clock
        self._state = SessionState.IDLE
        self._decision = AgentDecision.none()
        self._metadata: RequestMetadata | None = None
        self._observation: ResponseObservation | None = None
        self._start = 0.0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def decision(self) -> AgentDecision:
        return self._decision

    @property
    def metadata(self) -> RequestMetadata | None:
        return self._metadata

    @property
    def observation(self) -> ResponseObservation | None:
        return self._observation

    # -- lifecycle ----------------------------------------------------------

    def pre_request(self) -> CallResult:
        """Ask the agent for a decision. Call before the request is handled."""
        try:
            self._transition_to(SessionState.AWAITING_DECISION)
        except InvalidTransition as exc:
            return CallResult.failure(str(exc))

        self._start = self._clock()
        try:
            self._metadata = self._build_metadata()
            result = self._client.pre_request(self._metadata.to_payload())
            decision = AgentDecision.from_result(result)
        except AgentError as exc:
            log.debug("PreRequest failed, failing open: %s", exc)
            return CallResult.failure(str(exc), method=PRE_REQUEST)
        except Exception as exc:
            log.exception("PreRequest aborted, failing open")
            return CallResult.failure(_describe(exc), method=PRE_REQUEST)
        else:
            self._decision = decision
            return CallResult.success(PRE_REQUEST)
        finally:
            self._transition_to(SessionState.DECIDED)

    def block(self) -> bool:
        """True iff the agent's response code is in [300, 599]."""
        return self._decision.blocks()

    def post_request(self, observation: ResponseObservation | None = None) -> CallResult:
        """Report the response back to the agent, if a report is due.

        observation defaults to one read from the provider. Either way its
        elapsed_ms is set from this session's start.
        """
        try:
            self._transition_to(SessionState.RESPONSE_OBSERVED)
        except InvalidTransition as exc:
            return CallResult.failure(str(exc))

        try:
            obs = self._observe() if observation is None else observation
            obs.elapsed_ms = round((self._clock() - self._start) * 1000)
            self._observation = obs

            if self._decision.has_request_id():
                method, payload = UPDATE_REQUEST, self._update_payload(obs)
            elif obs.is_anomalous(self._config.anomaly_size, self._config.anomaly_duration):
                method, payload = POST_REQUEST, self._post_payload(obs)
            else:
                self._transition_to(SessionState.DONE)
                return CallResult.success()
        except Exception as exc:
            log.exception("PostRequest aborted")
            self._transition_to(SessionState.DONE)
            return CallResult.failure(_describe(exc))

        self._transition_to(SessionState.REPORTED)
        try:
            self._client.send(method, payload)
        except AgentError as exc:
            log.debug("%s failed: %s", method, exc)
            return CallResult.failure(str(exc), method=method)
        except Exception as exc:
            log.exception("%s aborted", method)
            return CallResult.failure(_describe(exc), method=method)
        finally:
            self._transition_to(SessionState.DONE)
        return CallResult.success(method)

    # -- host accessors -----------------------------------------------------

    def agent_response_code(self) -> int:
        return self._decision.response_code

    def agent_request_id(self) -> str:
        return self._decision.request_id

    def agent_tags(self) -> list[str]:
        return self._decision.tags()

    def agent_meta(self) -> dict[str, str]:
        return self._decision.meta()

    def response_headers(self) -> HeaderList:
        """Provider's response headers with the agent redirect folded in."""
        return self._decision.fold_redirect(self._provider.response_headers())

    # -- internals ----------------------------------------------------------

    def _build_metadata(self) -> RequestMetadata:
        provider = self._provider
        method = provider.method()
        content_length = provider.content_length()
        body = None
        if should_read_body(self._config, method, content_length, provider.content_type()):
            body = provider.read_body(parse_content_length(content_length))
        return RequestMetadata(
            module_version=MODULE_VERSION,
            server_version=provider.server_version(),
            server_flavor=SERVER_FLAVOR,
            server_name=provider.server_name(),
            timestamp=int(provider.request_time()),
            now_millis=int(self._wall_clock() * 1000),
            start_monotonic=self._start,
            remote_addr=provider.remote_addr(),
            method=method,
            scheme=provider.scheme(),
            uri=provider.uri(),
            protocol=provider.protocol(),
            headers=tuple(request_headers_of(provider)),
            body=body,
        )

    def _observe(self) -> ResponseObservation:
        return ResponseObservation(
            status_code=self._provider.response_code(),
            size=self._provider.response_size(),
            headers=list(self._provider.response_headers()),
        )

    def _headers_out(self, obs: ResponseObservation) -> list[list[str]]:
        return filter_headers(self._decision.fold_redirect(obs.headers))

    def _update_payload(self, obs: ResponseObservation) -> Payload:
        return {
            "RequestID": self._decision.request_id,
            "ResponseCode": obs.status_code,
            "ResponseMillis": obs.elapsed_ms,
            "ResponseSize": obs.size,
            "HeadersOut": self._headers_out(obs),
        }

    def _post_payload(self, obs: ResponseObservation) -> Payload:
        # metadata is None only when the provider failed during pre_request
        payload: Payload = {}
        if self._metadata is not None:
            payload = self._metadata.to_payload(include_body=False)
        payload.update(
            {
                "WAFResponse": self._decision.response_code,
                "ResponseCode": obs.status_code,
                "ResponseMillis": obs.elapsed_ms,
                "ResponseSize": obs.size,
                "HeadersOut": self._headers_out(obs),
            }
        )
        return payload

    def _transition_to(self, new_state: SessionState) -> None:
        """Validate and execute a state transition."""
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if new_state not in allowed:
            raise InvalidTransition(
                f"Cannot transition from {self._state.name} to {new_state.name}"
            )
        self._state = new_state
