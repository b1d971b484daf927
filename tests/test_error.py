from types import SimpleNamespace

import pytest

from wshandshake.error import (
    AlreadyClosed,
    CapacityError,
    CapacityErrorKind,
    ConnectionClosed,
    HttpError,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
    SendQueueFull,
    TlsError,
    UrlError,
    UrlErrorKind,
    Utf8Error,
    WebSocketError,
)


def test_connection_closed_message():
    err = ConnectionClosed()
    assert str(err) == "Connection closed normally"
    assert isinstance(err, WebSocketError)


def test_already_closed_message():
    assert str(AlreadyClosed()) == "Trying to work with closed connection"


def test_utf8_message():
    assert str(Utf8Error()) == "UTF-8 encoding error"


def test_send_queue_full_keeps_message():
    payload = object()
    err = SendQueueFull(payload)
    assert err.message is payload
    assert str(err) == "Send queue is full"


def test_too_many_headers():
    err = CapacityError(CapacityErrorKind.TOO_MANY_HEADERS)
    assert err.kind is CapacityErrorKind.TOO_MANY_HEADERS
    assert str(err) == "Space limit exceeded: Too many headers"


def test_message_too_long_carries_sizes():
    err = CapacityError(CapacityErrorKind.MESSAGE_TOO_LONG, size=10, max_size=5)
    assert (err.size, err.max_size) == (10, 5)
    assert "10 > 5" in str(err)


def test_message_too_long_requires_sizes():
    with pytest.raises(TypeError):
        CapacityError(CapacityErrorKind.MESSAGE_TOO_LONG)


def test_protocol_error_without_detail():
    err = ProtocolError(ProtocolErrorKind.HANDSHAKE_INCOMPLETE)
    assert err.kind is ProtocolErrorKind.HANDSHAKE_INCOMPLETE
    assert err.detail is None
    assert str(err) == "WebSocket protocol error: Handshake not finished"


def test_protocol_error_with_detail():
    err = ProtocolError(ProtocolErrorKind.INVALID_HEADER, "Host")
    assert err.detail == "Host"
    assert str(err).endswith("Host")
    assert ProtocolErrorKind.INVALID_HEADER.value.format("Host") in str(err)


def test_protocol_error_detail_required():
    with pytest.raises(TypeError):
        ProtocolError(ProtocolErrorKind.INVALID_OPCODE)


def test_url_error_unable_to_connect():
    err = UrlError(UrlErrorKind.UNABLE_TO_CONNECT, "ws://localhost/")
    assert err.target == "ws://localhost/"
    assert str(err).endswith("ws://localhost/")


def test_url_error_without_target():
    err = UrlError(UrlErrorKind.NO_HOST_NAME)
    assert str(err).endswith(UrlErrorKind.NO_HOST_NAME.value)


def test_url_error_target_required():
    with pytest.raises(TypeError):
        UrlError(UrlErrorKind.UNABLE_TO_CONNECT)


def test_http_error_keeps_response():
    response = SimpleNamespace(status=404)
    err = HttpError(response)
    assert err.response is response
    assert "404" in str(err)


def test_detail_errors_mention_detail():
    assert "bad uri" in str(HttpFormatError("bad uri"))
    assert "handshake failure" in str(TlsError("handshake failure"))