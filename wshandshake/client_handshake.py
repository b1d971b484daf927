"""The client side of the WebSocket opening handshake."""

from __future__ import annotations

import base64
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from .error import (
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    UrlError,
    UrlErrorKind,
    Utf8Error,
)
from .handshake import Continue, Done, MidHandshake, derive_accept_key
from .headers import HeaderMap, HttpRequest, HttpResponse, parse_header_lines
from .machine import DoneReading, DoneWriting, HandshakeMachine

log = logging.getLogger(__name__)

_KEY_HEADER = "Sec-WebSocket-Key"
_WEBSOCKET_HEADERS = ("Host", "Connection", "Upgrade", "Sec-WebSocket-Version", _KEY_HEADER)
_CANONICAL_NAMES = {
    "sec-websocket-protocol": "Sec-WebSocket-Protocol",
    "origin": "Origin",
}
_STATUS_LINE = re.compile(rb"HTTP/1\.(\d) (\d{3})(?: (.*))?")


def generate_key() -> str:
    """Generate a random ``Sec-WebSocket-Key`` value (16 bytes, base64)."""
    return base64.b64encode(secrets.token_bytes(16)).decode("ascii")


def _to_str(value: str) -> str:
    if any(not (c == "\t" or " " <= c <= "~") for c in value):
        raise Utf8Error()
    return value


def _path_and_query(uri: str) -> str:
    if not uri:
        raise UrlError(UrlErrorKind.NO_PATH_OR_QUERY)
    parts = urlsplit(uri)
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def generate_request(request: HttpRequest) -> tuple[bytes, str]:
    """Serialize and check a client request; return the bytes and its key."""
    major, minor = request.version
    lines = [f"GET {_path_and_query(request.uri)} HTTP/{major}.{minor}\r\n"]

    key_value = request.headers.get(_KEY_HEADER)
    if key_value is None:
        raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, _KEY_HEADER.lower())
    key = _to_str(key_value)

    headers = HeaderMap(list(request.headers))
    for name in _WEBSOCKET_HEADERS:
        value = headers.remove(name)
        if value is None:
            raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, name.lower())
        lines.append(f"{name}: {_to_str(value)}\r\n")

    required = {name.lower() for name in _WEBSOCKET_HEADERS}
    for name, value in headers:
        if name in required:
            raise ProtocolError(ProtocolErrorKind.INVALID_HEADER, name)
        lines.append(f"{_CANONICAL_NAMES.get(name, name)}: {_to_str(value)}\r\n")

    lines.append("\r\n")
    data = "".join(lines).encode("latin-1")
    log.debug("Request: %r", data)
    return data, key


def _parse_status_line(line: bytes) -> tuple[int, int]:
    if line.endswith(b"\r"):
        line = line[:-1]
    match = _STATUS_LINE.fullmatch(line)
    if match is None:
        raise ProtocolError(ProtocolErrorKind.HTTP_PARSE, "invalid status line")
    return int(match.group(1)), int(match.group(2))


def try_parse_response(data: bytes) -> tuple[int, HttpResponse] | None:
    """Parse a response head; None while incomplete, else ``(size, response)``."""
    data = bytes(data)
    end = data.find(b"\n")
    if end < 0:
        return None
    minor, code = _parse_status_line(data[:end])
    parsed = parse_header_lines(data, end + 1)
    if parsed is None:
        return None
    size, headers = parsed
    if minor < 1:
        raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
    if not 100 <= code <= 999:
        raise HttpFormatError(f"invalid status code {code}")
    return size, HttpResponse(status=code, version=(1, 1), headers=headers, body=None)


def _header_equals(headers: HeaderMap, name: str, expected: str) -> bool:
    value = headers.get(name)
    if value is None:
        return False
    try:
        return _to_str(value).lower() == expected.lower()
    except Utf8Error:
        return False


def verify_response(accept_key: str, response: HttpResponse) -> HttpResponse:
    """Check a server response against RFC 6455 and return it."""
    if response.status != 101:
        raise HttpError(response)
    headers = response.headers
    if not _header_equals(headers, "Upgrade", "websocket"):
        raise ProtocolError(ProtocolErrorKind.MISSING_UPGRADE_WEBSOCKET_HEADER)
    if not _header_equals(headers, "Connection", "Upgrade"):
        raise ProtocolError(ProtocolErrorKind.MISSING_CONNECTION_UPGRADE_HEADER)
    if headers.get("Sec-WebSocket-Accept") != accept_key:
        raise ProtocolError(ProtocolErrorKind.SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH)
    return response


@dataclass
class ClientConnection:
    """A completed client handshake: the stream, the response and bytes read past it."""

    stream: Any
    response: HttpResponse
    tail: bytes


def _check_scheme(uri: str) -> None:
    if urlsplit(uri).scheme not in ("ws", "wss"):
        raise UrlError(UrlErrorKind.UNSUPPORTED_URL_SCHEME)


class ClientHandshake:
    """The client role of a handshake."""

    try_parse = staticmethod(try_parse_response)

    def __init__(self, accept_key: str) -> None:
        self.accept_key = accept_key

    @classmethod
    def start(cls, stream: Any, request: HttpRequest) -> MidHandshake:
        """Check ``request`` and begin sending it over ``stream``."""
        if request.method != "GET":
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_METHOD)
        if tuple(request.version) < (1, 1):
            raise ProtocolError(ProtocolErrorKind.WRONG_HTTP_VERSION)
        _check_scheme(request.uri)
        data, key = generate_request(request)
        machine = HandshakeMachine.start_write(stream, data)
        log.debug("Client handshake initiated.")
        return MidHandshake(cls(derive_accept_key(key)), machine)

    def stage_finished(self, finish: DoneReading | DoneWriting) -> Continue | Done:
        if isinstance(finish, DoneWriting):
            return Continue(HandshakeMachine.start_read(finish.stream))
        try:
            response = verify_response(self.accept_key, finish.result)
        except HttpError as err:
            err.response.body = finish.tail
            raise
        log.debug("Client handshake done.")
        return Done(ClientConnection(finish.stream, response, finish.tail))