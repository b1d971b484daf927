"""Connecting to a WebSocket server as a client."""

from __future__ import annotations

import enum
import logging
import socket
import ssl
from typing import Any
from urllib.parse import urlsplit

from .client_handshake import ClientConnection, ClientHandshake, generate_key
from .error import (
    HttpError,
    HttpFormatError,
    UrlError,
    UrlErrorKind,
    Utf8Error,
)
from .handshake import HandshakeInterrupted
from .headers import HeaderMap, HttpRequest

log = logging.getLogger(__name__)


class Mode(enum.Enum):
    """Whether a connection is plain or runs over TLS."""

    PLAIN = "plain"
    TLS = "tls"


_DEFAULT_PORTS = {Mode.PLAIN: 80, Mode.TLS: 443}


def uri_mode(uri: str) -> Mode:
    """Return the mode of a ``ws://`` or ``wss://`` URI."""
    scheme = urlsplit(uri).scheme
    if scheme == "ws":
        return Mode.PLAIN
    if scheme == "wss":
        return Mode.TLS
    raise UrlError(UrlErrorKind.UNSUPPORTED_URL_SCHEME)


def _checked_uri(uri: str) -> str:
    if not uri or any(not ("!" <= c <= "~") for c in uri):
        raise HttpFormatError(f"invalid URI {uri!r}")
    try:
        urlsplit(uri)
    except ValueError as err:
        raise HttpFormatError(f"invalid URI {uri!r}: {err}") from None
    return uri


def into_client_request(target: str | HttpRequest) -> HttpRequest:
    """Build a handshake request for a URL; a ready request is returned unchanged."""
    if isinstance(target, HttpRequest):
        return target
    uri = _checked_uri(str(target))
    authority = urlsplit(uri).netloc
    if not authority:
        raise UrlError(UrlErrorKind.NO_HOST_NAME)
    host = authority.rpartition("@")[2]
    if not host:
        raise UrlError(UrlErrorKind.EMPTY_HOST_NAME)
    headers = HeaderMap(
        [
            ("Host", host),
            ("Connection", "Upgrade"),
            ("Upgrade", "websocket"),
            ("Sec-WebSocket-Version", "13"),
            ("Sec-WebSocket-Key", generate_key()),
        ]
    )
    return HttpRequest(method="GET", uri=uri, version=(1, 1), headers=headers)


def client(request: str | HttpRequest, stream: Any) -> ClientConnection:
    """Perform the client handshake over an existing stream.

    Raises HandshakeInterrupted if a non-blocking stream is not ready.
    """
    return ClientHandshake.start(stream, into_client_request(request)).handshake()


class _SocketStream:
    """A socket seen as a stream with ``read``, ``write`` and ``close``."""

    def __init__(self, sock: socket.socket) -> None:
        self.socket = sock

    def read(self, size: int) -> bytes:
        return self.socket.recv(size)

    def write(self, data: bytes) -> int:
        return self.socket.send(data)

    def close(self) -> None:
        self.socket.close()


def _connect_to_some(addresses: list, uri: str) -> socket.socket:
    for family, kind, proto, _, address in addresses:
        log.debug("Trying to contact %s at %s...", uri, address)
        sock = socket.socket(family, kind, proto)
        try:
            sock.connect(address)
        except OSError:
            sock.close()
            continue
        return sock
    raise UrlError(UrlErrorKind.UNABLE_TO_CONNECT, uri)


def _try_client_handshake(request: HttpRequest) -> ClientConnection:
    mode = uri_mode(request.uri)
    parts = urlsplit(request.uri)
    host = parts.hostname
    if not host:
        raise UrlError(UrlErrorKind.NO_HOST_NAME)
    try:
        port = parts.port
    except ValueError as err:
        raise HttpFormatError(f"invalid port in {request.uri!r}: {err}") from None
    if port is None:
        port = _DEFAULT_PORTS[mode]
    addresses = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    sock = _connect_to_some(addresses, request.uri)
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        if mode is Mode.TLS:
            sock = ssl.create_default_context().wrap_socket(sock, server_hostname=host)
        return ClientHandshake.start(_SocketStream(sock), request).handshake()
    except HandshakeInterrupted:
        sock.close()
        raise RuntimeError("blocking handshake was interrupted") from None
    except BaseException:
        sock.close()
        raise


def connect(request: str | HttpRequest, max_redirects: int = 3) -> ClientConnection:
    """Open a TCP connection and perform the handshake, following redirects.

    Up to ``max_redirects`` redirect responses with a ``Location`` header are
    followed; any other non-101 response raises HttpError.
    """
    if max_redirects < 0:
        raise ValueError("max_redirects must not be negative")
    base = into_client_request(request)
    uri = base.uri
    for attempt in range(max_redirects + 1):
        attempt_request = HttpRequest(
            method=base.method,
            uri=uri,
            version=base.version,
            headers=HeaderMap(list(base.headers)),
        )
        try:
            return _try_client_handshake(attempt_request)
        except HttpError as err:
            if not (err.response.is_redirection() and attempt < max_redirects):
                raise
            location = err.response.headers.get("Location")
            if location is None:
                log.warning("No `Location` found in redirect")
                raise
            if any(not (c == "\t" or " " <= c <= "~") for c in location):
                raise Utf8Error() from None
            uri = _checked_uri(location)
            log.debug("Redirecting to %s", uri)
    raise RuntimeError("redirect handling did not finish")