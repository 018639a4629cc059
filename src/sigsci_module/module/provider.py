"""Metadata providers: where the session gets request and response fields.

The host owns the request. The session only ever asks for fields through
the MetadataProvider protocol below, so any server can plug in by
implementing a handful of methods.

Request headers are the one field with two strategies:
    1. the provider has request_headers() -> use it (structured API)
    2. otherwise rebuild them from the CGI-style environ's HTTP_* keys
request_headers_of() picks between them by capability, not by type.

WSGIEnvironProvider is the bundled provider. WSGI has no structured
header API, so it deliberately exposes only `environ` and goes through
the legacy reconstruction.
"""
from __future__ import annotations

import io
import logging
import platform
import time
from typing import Any, Iterable, Mapping, Protocol
from urllib.parse import quote

from sigsci_module.domain.request import ResponseObservation
from sigsci_module.domain.types import HeaderList

log = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    """What the session needs from the host.

    Request side is read once at pre_request, response side once at
    post_request. Optionally a provider also implements
    request_headers() -> HeaderList, or exposes a CGI-style `environ`.
    """

    def method(self) -> str: ...

    def uri(self) -> str: ...

    def protocol(self) -> str: ...

    def scheme(self) -> str: ...

    def remote_addr(self) -> str: ...

    def request_time(self) -> int: ...

    def server_name(self) -> str: ...

    def server_version(self) -> str: ...

    def content_length(self) -> str | None: ...

    def content_type(self) -> str | None: ...

    def read_body(self, max_size: int) -> bytes | None: ...

    def response_code(self) -> int: ...

    def response_size(self) -> int: ...

    def response_headers(self) -> HeaderList: ...


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------

def headers_from_environ(environ: Mapping[str, Any]) -> HeaderList:
    """Rebuild request headers from CGI-style keys.

    HTTP_X_FORWARDED_FOR -> X-Forwarded-For. CONTENT_TYPE and
    CONTENT_LENGTH carry no HTTP_ prefix, so they are added explicitly
    when non-empty.
    """
    headers: HeaderList = []
    for key, value in environ.items():
        if not key.startswith("HTTP_"):
            continue
        name = "-".join(part.capitalize() for part in key[5:].lower().split("_"))
        headers.append((name, str(value)))
    for key, name in (("CONTENT_TYPE", "Content-Type"), ("CONTENT_LENGTH", "Content-Length")):
        if environ.get(key):
            headers.append((name, str(environ[key])))
    return headers


def request_headers_of(provider: Any) -> HeaderList:
    """Structured headers if the provider has them, else the environ fallback."""
    structured = getattr(provider, "request_headers", None)
    if callable(structured):
        return list(structured())
    environ = getattr(provider, "environ", None)
    if isinstance(environ, Mapping):
        return headers_from_environ(environ)
    return []


def parse_header_lines(lines: Iterable[str]) -> HeaderList:
    """Parse raw "Name: value" lines. Lines without a colon are skipped."""
    headers: HeaderList = []
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers.append((name.strip(), value.strip()))
    return headers


def parse_status(status: str) -> int:
    """'404 Not Found' -> 404. Returns 0 for anything unparseable."""
    code, _, _ = status.strip().partition(" ")
    try:
        return int(code)
    except ValueError:
        return 0


# ---------------------------------------------------------------------------
# WSGI provider
# ---------------------------------------------------------------------------

class WSGIEnvironProvider:
    """MetadataProvider over a WSGI environ.

    The response side is filled in by whoever wraps the application
    (see SigSciMiddleware): record_response() when start_response is
    called, count() for every chunk written.

    Args:
        environ: the WSGI environ for this request.
        start_time: wall-clock epoch seconds the request started; used as
            the request timestamp when the server gives none.
    """

    def __init__(self, environ: dict[str, Any], start_time: float | None = None) -> None:
        self.environ = environ
        self._start_time = time.time() if start_time is None else start_time
        self.observation = ResponseObservation()

    # -- request side -----------------------------------------------------

    def method(self) -> str:
        return self.environ.get("REQUEST_METHOD", "GET")

    def uri(self) -> str:
        if self.environ.get("REQUEST_URI"):
            return self.environ["REQUEST_URI"]
        path = self.environ.get("SCRIPT_NAME", "") + self.environ.get("PATH_INFO", "")
        uri = quote(path, safe="/;=,", encoding="latin1") or "/"
        if self.environ.get("QUERY_STRING"):
            uri += "?" + self.environ["QUERY_STRING"]
        return uri

    def protocol(self) -> str:
        return self.environ.get("SERVER_PROTOCOL", "HTTP/1.1")

    def scheme(self) -> str:
        """'https' if the connection is likely under TLS, else 'http'."""
        https = str(self.environ.get("HTTPS", ""))
        if https and https.lower() != "off":
            return "https"
        if str(self.environ.get("SERVER_PORT", "")) == "443":
            return "https"
        if self.environ.get("wsgi.url_scheme") == "https":
            return "https"
        return "http"

    def remote_addr(self) -> str:
        return self.environ.get("REMOTE_ADDR", "")

    def request_time(self) -> int:
        try:
            return int(self.environ["REQUEST_TIME"])
        except (KeyError, TypeError, ValueError):
            return int(self._start_time)

    def server_name(self) -> str:
        return self.environ.get("SERVER_NAME", "")

    def server_version(self) -> str:
        software = self.environ.get("SERVER_SOFTWARE")
        if software:
            return f"{software}/Python{platform.python_version()}"
        return f"Python{platform.python_version()}/WSGI"

    def content_length(self) -> str | None:
        return self.environ.get("CONTENT_LENGTH") or None

    def content_type(self) -> str | None:
        return self.environ.get("CONTENT_TYPE") or None

    def read_body(self, max_size: int) -> bytes | None:
        """Read up to max_size bytes and put them back for the application."""
        stream = self.environ.get("wsgi.input")
        if stream is None:
            return None
        try:
            body = stream.read(max_size)
        except (OSError, ValueError) as exc:
            log.warning("could not read request body: %s", exc)
            return None
        self.environ["wsgi.input"] = io.BytesIO(body)
        return body

    # -- response side ----------------------------------------------------

    def record_response(self, status: str, headers: Iterable[tuple[str, str]]) -> None:
        """Remember what the application passed to start_response."""
        self.observation.status_code = parse_status(status)
        self.observation.headers = list(headers)

    def count(self, chunk: bytes) -> bytes:
        return self.observation.count(chunk)

    def response_code(self) -> int:
        return self.observation.status_code

    def response_size(self) -> int:
        return self.observation.size

    def response_headers(self) -> HeaderList:
        return list(self.observation.headers)
