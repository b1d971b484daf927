"""Errors raised by the WebSocket handshake and protocol layers."""

from __future__ import annotations

import enum
from http import HTTPStatus
from typing import Any


class WebSocketError(Exception):
    """Base class of every error raised by this package."""


class ConnectionClosed(WebSocketError):
    """The connection was closed normally; the socket is no longer usable."""

    def __init__(self) -> None:
        super().__init__("Connection closed normally")


class AlreadyClosed(WebSocketError):
    """An attempt was made to use a connection that is already closed."""

    def __init__(self) -> None:
        super().__init__("Trying to work with closed connection")


class TlsError(WebSocketError):
    """A TLS layer failure."""

    def __init__(self, detail: object) -> None:
        self.detail = detail
        super().__init__(f"TLS error: {detail}")


class Utf8Error(WebSocketError):
    """Data that had to be text was not valid UTF-8."""

    def __init__(self) -> None:
        super().__init__("UTF-8 encoding error")


class CapacityErrorKind(enum.Enum):
    """The specific cause of a capacity error."""

    TOO_MANY_HEADERS = "Too many headers"
    MESSAGE_TOO_LONG = "Message too long: {size} > {max_size}"


class CapacityError(WebSocketError):
    """A size or count limit was exceeded."""

    def __init__(
        self,
        kind: CapacityErrorKind,
        size: int | None = None,
        max_size: int | None = None,
    ) -> None:
        if kind is CapacityErrorKind.MESSAGE_TOO_LONG and (size is None or max_size is None):
            raise TypeError("MESSAGE_TOO_LONG requires size and max_size")
        self.kind = kind
        self.size = size
        self.max_size = max_size
        text = kind.value.format(size=size, max_size=max_size)
        super().__init__(f"Space limit exceeded: {text}")


class ProtocolErrorKind(enum.Enum):
    """The specific cause of a protocol error."""

    WRONG_HTTP_METHOD = "Unsupported HTTP method used - only GET is allowed"
    WRONG_HTTP_VERSION = "HTTP version must be 1.1 or higher"
    MISSING_CONNECTION_UPGRADE_HEADER = 'No "Connection: upgrade" header'
    MISSING_UPGRADE_WEBSOCKET_HEADER = 'No "Upgrade: websocket" header'
    MISSING_SEC_WEBSOCKET_VERSION_HEADER = 'No "Sec-WebSocket-Version: 13" header'
    MISSING_SEC_WEBSOCKET_KEY = 'No "Sec-WebSocket-Key" header'
    SEC_WEBSOCKET_ACCEPT_KEY_MISMATCH = 'Key mismatch in "Sec-WebSocket-Accept" header'
    JUNK_AFTER_REQUEST = "Junk after client request"
    CUSTOM_RESPONSE_SUCCESSFUL = "Custom response must not be successful"
    INVALID_HEADER = "Missing, duplicated or incorrect header {0}"
    HANDSHAKE_INCOMPLETE = "Handshake not finished"
    HTTP_PARSE = "HTTP parse error: {0}"
    SEND_AFTER_CLOSING = "Sending after closing is not allowed"
    RECEIVED_AFTER_CLOSING = "Remote sent after having closed"
    NON_ZERO_RESERVED_BITS = "Reserved bits are non-zero"
    UNMASKED_FRAME_FROM_CLIENT = "Received an unmasked frame from client"
    MASKED_FRAME_FROM_SERVER = "Received a masked frame from server"
    FRAGMENTED_CONTROL_FRAME = "Fragmented control frame"
    CONTROL_FRAME_TOO_BIG = "Control frame too big (payload must be 125 bytes or less)"
    UNKNOWN_CONTROL_FRAME_TYPE = "Unknown control frame type: {0}"
    UNKNOWN_DATA_FRAME_TYPE = "Unknown data frame type: {0}"
    UNEXPECTED_CONTINUE_FRAME = "Continue frame but nothing to continue"
    EXPECTED_FRAGMENT = "While waiting for more fragments received: {0}"
    RESET_WITHOUT_CLOSING_HANDSHAKE = "Connection reset without closing handshake"
    INVALID_OPCODE = "Encountered invalid opcode: {0}"
    INVALID_CLOSE_SEQUENCE = "Invalid close sequence"

    @property
    def needs_detail(self) -> bool:
        return "{0}" in self.value


class ProtocolError(WebSocketError):
    """The peer or the caller violated the WebSocket protocol."""

    def __init__(self, kind: ProtocolErrorKind, detail: Any = None) -> None:
        if kind.needs_detail and detail is None:
            raise TypeError(f"{kind.name} requires a detail")
        self.kind = kind
        self.detail = detail
        super().__init__(f"WebSocket protocol error: {kind.value.format(detail)}")


class UrlErrorKind(enum.Enum):
    """The specific cause of a URL error."""

    TLS_FEATURE_NOT_ENABLED = "TLS support not compiled in"
    NO_HOST_NAME = "No host name in the URL"
    UNABLE_TO_CONNECT = "Unable to connect to {0}"
    UNSUPPORTED_URL_SCHEME = "URL scheme not supported"
    EMPTY_HOST_NAME = "URL contains empty host name"
    NO_PATH_OR_QUERY = "No path/query in URL"


class UrlError(WebSocketError):
    """The URL given for a connection is unusable."""

    def __init__(self, kind: UrlErrorKind, target: str | None = None) -> None:
        if kind is UrlErrorKind.UNABLE_TO_CONNECT and target is None:
            raise TypeError("UNABLE_TO_CONNECT requires a target")
        self.kind = kind
        self.target = target
        super().__init__(f"URL error: {kind.value.format(target)}")


def _status_text(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        return str(status)
    return f"{status} {phrase}"


class HttpError(WebSocketError):
    """The peer answered the handshake with an unexpected HTTP response."""

    def __init__(self, response: Any) -> None:
        self.response = response
        super().__init__(f"HTTP error: {_status_text(response.status)}")


class HttpFormatError(WebSocketError):
    """An HTTP name, value or URI is malformed."""

    def __init__(self, detail: object) -> None:
        self.detail = detail
        super().__init__(f"HTTP format error: {detail}")


class SendQueueFull(WebSocketError):
    """The outgoing message queue is full; the message was not queued."""

    def __init__(self, message: Any) -> None:
        self.message = message
        super().__init__("Send queue is full")