"""WSGI middleware that drives a RequestSession around an application.

Per request:
    1. build a WSGIEnvironProvider and a RequestSession
    2. pre_request(); on failure log and carry on (fail open)
    3. block() -> answer with the agent's status, the app never runs
       otherwise -> run the app with start_response and the body iterable
       wrapped so status, headers and byte count are recorded
    4. post_request() when the server closes the iterable, or right away
       (status 500) if the app raised before returning one

Usage:
    application = SigSciMiddleware(application, ModuleConfig.from_overrides(
        socket_address="/var/run/sigsci.sock",
    ))
"""
from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Callable, Iterable, Iterator

from sigsci_module.config import ModuleConfig
from sigsci_module.module.provider import WSGIEnvironProvider
from sigsci_module.module.session import RequestSession
from sigsci_module.rpc.client import AgentClient

log = logging.getLogger(__name__)

BLOCK_FALLBACK_STATUS = 406

WSGIApp = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]


class _ReportingIterable:
    """Counts bytes as the server pulls them; reports once on close()."""

    def __init__(
        self,
        result: Iterable[bytes],
        provider: WSGIEnvironProvider,
        on_close: Callable[[], None],
    ) -> None:
        self._result = result
        self._provider = provider
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._result:
            yield self._provider.count(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._result, "close", None)
            if close is not None:
                close()
        finally:
            self._on_close()


def _status_line(code: int) -> tuple[int, str]:
    try:
        status = HTTPStatus(code)
    except ValueError:
        status = HTTPStatus(BLOCK_FALLBACK_STATUS)
    return status.value, f"{status.value} {status.phrase}"


class SigSciMiddleware:
    """Wraps a WSGI application with agent pre/post calls.

    Args:
        app: the WSGI application being protected.
        config: module settings; defaults if omitted.
        client: shared AgentClient; built from config if omitted.
    """

    def __init__(
        self,
        app: WSGIApp,
        config: ModuleConfig | None = None,
        client: AgentClient | None = None,
    ) -> None:
        self.app = app
        self.config = config or (client.config if client else ModuleConfig())
        self.client = client or AgentClient(self.config)

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        provider = WSGIEnvironProvider(environ)
        session = RequestSession(provider, config=self.config, client=self.client)

        pre = session.pre_request()
        if not pre:
            log.warning("error in prerequest: %s", pre.error)

        if session.block():
            return self._reject(session, provider, start_response)

        def _start_response(status: str, headers: list[tuple[str, str]], exc_info: Any = None):
            provider.record_response(status, headers)
            write = start_response(status, headers, exc_info)

            def _write(data: bytes) -> None:
                write(provider.count(data))

            return _write

        try:
            result = self.app(environ, _start_response)
        except Exception:
            provider.record_response("500 Internal Server Error", provider.response_headers())
            self._finish(session)
            raise
        return _ReportingIterable(result, provider, lambda: self._finish(session))

    def _reject(
        self,
        session: RequestSession,
        provider: WSGIEnvironProvider,
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        code, status = _status_line(session.agent_response_code())
        body = f"{status}\n".encode("ascii")
        headers = [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("Content-Length", str(len(body))),
        ]
        headers = session.decision.fold_redirect(headers)
        log.info(
            "blocked %s %s with %d (tags: %s)",
            provider.method(),
            provider.uri(),
            code,
            ",".join(session.agent_tags()) or "-",
        )
        provider.record_response(status, headers)
        start_response(status, headers)
        return _ReportingIterable([body], provider, lambda: self._finish(session))

    @staticmethod
    def _finish(session: RequestSession) -> None:
        post = session.post_request()
        if not post:
            log.warning("error in postrequest: %s", post.error)
