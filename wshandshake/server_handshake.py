"""The server side of the WebSocket opening handshake."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable, Optional

from .error import (
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    Utf8Error,
)
from .handshake import Continue, Done, MidHandshake, derive_accept_key
from .headers import HeaderMap, HttpRequest, HttpResponse, parse_header_lines
from .machine import DoneReading, DoneWriting, HandshakeMachine

log = logging.getLogger(__name__)

_REQUEST_LINE = re.compile(rb"([!#$%&'*+\-.^_`|~0-9A-Za-z]+) (\S+) HTTP/1\.(\d)")

Callback = Callable[[HttpRequest, HttpResponse], HttpResponse]


def _is_visible(value: str) -> bool:
    return all(c == "\t" or " " <= c <= "~" for c in value)


def _to_str(value: str) -> str:
    if not _is_visible(value):
        raise Utf8Error()
    return value


def _has_token(value: Optional[str], token: str) -> bool:
    if value is None or not _is_visible(value):
        return False
    return any(part.lower() == token for part in re.split(r"[ ,]", value))


def _equals_ignore_case(value: Optional[str], expected: str) -> bool:
    return value is not None and _is_visible(value) and value.lower() == expected


def _response_headers(request: HttpRequest) -> HeaderMap:
    if request.method != "GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if tuple(request.version) < (1, 1):
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
    headers = request.headers
    if not _has_token(headers.get("Connection"), "upgrade"):
        raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)
    if not _equals_ignore_case(headers.get("Upgrade"), "websocket"):
        raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)
    if headers.get("Sec-WebSocket-Version") != "13":
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_VERSION_HEADER)
    key = headers.get("Sec-WebSocket-Key")
    if key is None:
        raise ProtocolError(ProtocolErrorKind.MISSING_SEC_WEBSOCKET_KEY)
    return HeaderMap(
        [
            ("Connection", "Upgrade"),
            ("Upgrade", "websocket"),
            ("Sec-WebSocket-Accept", derive_accept_key(key)),
        ]
    )


def create_response(request: HttpRequest) -> HttpResponse:
    """Create the ``101 Switching Protocols`` response for a handshake request."""
    headers = _response_headers(request)
    return HttpResponse(status=101, version=tuple(request.version), headers=headers, body=None)


def create_response_with_body(request: HttpRequest, generate_body: Callable[[], Any]) -> HttpResponse:
    """Like :func:`create_response`, with a body produced by ``generate_body``."""
    headers = _response_headers(request)
    return HttpResponse(
        status=101, version=tuple(request.version), headers=headers, body=generate_body()
    )


def _status_text(status: int) -> str:
    try:
        return f"{status} {HTTPStatus(status).phrase}"
    except ValueError:
        return f"{status} <unknown status code>"


def write_response(response: HttpResponse) -> bytes:
    """Serialize the head of ``response``: status line, headers and blank line."""
    major, minor = response.version
    lines = [f"HTTP/{major}.{minor} {_status_text(response.status)}\r\n"]
    lines.extend(f"{name}: {_to_str(value)}\r\n" for name, value in response.headers)
    lines.append("\r\n")
    return "".join(lines).encode("latin-1")


def try_parse_request(data: bytes) -> tuple[int, HttpRequest] | None:
    """Parse a request head; None while incomplete, else ``(size, request)``."""
    data = bytes(data)
    end = data.find(b"\n")
    if end < 0:
        return None
    line = data[:end]
    if line.endswith(b"\r"):
        line = line[:-1]
    match = _REQUEST_LINE.fullmatch(line)
    if match is None:
        raise ProtocolError(ProtocolErrorKind.HTTP_PARSE, "invalid request line")
    parsed = parse_header_lines(data, end + 1)
    if parsed is None:
        return None
    size, headers = parsed
    method, target, minor = match.groups()
    if method != b"GET":
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if int(minor) < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
    try:
        uri = target.decode("ascii")
    except UnicodeDecodeError:
        raise HttpFormatError(f"invalid URI {target!r}") from None
    return size, HttpRequest(method="GET", uri=uri, version=(1, 1), headers=headers)


class Reject(Exception):
    """Raised by a server callback to refuse a handshake with ``response``."""

    def __init__(self, response: HttpResponse) -> None:
        self.response = response
        super().__init__(f"handshake rejected with status {response.status}")


@dataclass
class ServerConnection:
    """A completed server handshake: the stream, the request and the response sent."""

    stream: Any
    request: HttpRequest
    response: HttpResponse


def _body_bytes(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


class ServerHandshake:
    """The server role of a handshake.

    The optional callback is called with the parsed request and the prepared
    response. It returns the response to send, possibly modified, or raises
    :class:`Reject` to refuse the connection.
    """

    try_parse = staticmethod(try_parse_request)

    def __init__(self, callback: Callback | None = None) -> None:
        self.callback = callback
        self._request: HttpRequest | None = None
        self._response: HttpResponse | None = None
        self._error_response: HttpResponse | None = None

    @classmethod
    def start(cls, stream: Any, callback: Callback | None = None) -> MidHandshake:
        """Begin reading a handshake request from ``stream``."""
        log.debug("Server handshake initiated.")
        return MidHandshake(cls(callback), HandshakeMachine.start_read(stream))

    def stage_finished(self, finish: DoneReading | DoneWriting) -> Continue | Done:
        if isinstance(finish, DoneReading):
            return self._reply(finish)
        return self._complete(finish.stream)

    def _reply(self, finish: DoneReading) -> Continue:
        if finish.tail:
            raise ProtocolError(ProtocolErrorKind.JUNK_AFTER_REQUEST)
        request = finish.result
        response = create_response(request)
        callback, self.callback = self.callback, None
        self._request = request
        try:
            if callback is not None:
                response = callback(request, response)
        except Reject as rejection:
            refused = rejection.response
            if refused.is_success():
                raise ProtocolError(ProtocolErrorKind.CUSTOM_RESPONSE_SUCCESSFUL) from None
            self._error_response = refused
            output = write_response(refused) + (_body_bytes(refused.body) or b"")
            return Continue(HandshakeMachine.start_write(finish.stream, output))
        self._response = response
        return Continue(HandshakeMachine.start_write(finish.stream, write_response(response)))

    def _complete(self, stream: Any) -> Done:
        if self._error_response is not None:
            refused, self._error_response = self._error_response, None
            log.debug("Server handshake failed.")
            raise HttpError(
                HttpResponse(
                    status=refused.status,
                    version=refused.version,
                    headers=refused.headers,
                    body=_body_bytes(refused.body),
                )
            )
        log.debug("Server handshake done.")
        assert self._request is not None and self._response is not None
        return Done(ServerConnection(stream, self._request, self._response))