# wshandshake

The WebSocket opening handshake (RFC 6455) for both ends of a connection,
over any stream object that can read and write bytes.

A stream here is any object with `read(n)` returning bytes and
`write(data)` returning the number of bytes written. A non-blocking stream
signals that it is not ready by raising `BlockingIOError` or returning
`None`. A socket opened with `sock.makefile("rwb", buffering=0)` fits, as
does an in-memory stand-in in tests.

The handshake runs as a small state machine
(`wshandshake.machine.HandshakeMachine`), so it works with blocking and
non-blocking streams alike. When the stream is not ready, the handshake
stops with `wshandshake.handshake.HandshakeInterrupted`; its
`mid_handshake` attribute is the `MidHandshake` to resume later by calling
its `handshake()` again.

## Installing

    pip install wshandshake

The package has no runtime dependencies beyond the standard library.

## Client side

`wshandshake.client.connect(request, max_redirects=3)` resolves the host of
a `ws://` or `wss://` URL, opens a TCP connection (wrapped in TLS with the
default SSL context for `wss://`), and performs the client handshake. It
follows up to `max_redirects` redirect responses that carry a `Location`
header:

```python
from wshandshake.client import connect

connection = connect("ws://localhost:9001/getCaseCount")
print(connection.response.status)   # 101
```

The result is a `ClientConnection` with the `stream`, the server's
`response` (an `HttpResponse`) and `tail`, the bytes the server sent after
its response head.

If you already have a connected stream, use `client(request, stream)`. The
request may be a URL string or an `HttpRequest`. `into_client_request(url)`
builds the request, filling in `Host`, `Connection`, `Upgrade`,
`Sec-WebSocket-Version` and a fresh random `Sec-WebSocket-Key`; an
`HttpRequest` passed to it is returned unchanged. `uri_mode(url)` returns
`Mode.PLAIN` for `ws` and `Mode.TLS` for `wss`, so you can wrap the socket
yourself before handing it over.

A response other than `101 Switching Protocols` raises `HttpError`, whose
`response` holds the server's reply with any following bytes as its body. A
response with a missing or wrong `Upgrade` or `Connection` header, or a
`Sec-WebSocket-Accept` that does not match, raises `ProtocolError`.

The lower-level pieces live in `wshandshake.client_handshake`:
`generate_request` renders a request to bytes, `try_parse_response` parses
a response head, `verify_response` checks it, and `ClientHandshake.start`
begins a handshake and returns a `MidHandshake`.

## Server side

```python
from wshandshake.server_handshake import Reject, ServerHandshake
from wshandshake.headers import HttpResponse

def on_request(request, response):
    if request.uri != "/socket":
        raise Reject(HttpResponse(status=403, body="Access denied"))
    response.headers.append("MyCustomHeader", ":)")
    return response

connection = ServerHandshake.start(stream, on_request).handshake()
```

The server reads the client's request, checks the method, version and the
`Connection`, `Upgrade`, `Sec-WebSocket-Version` and `Sec-WebSocket-Key`
headers, and answers with `101 Switching Protocols`. Bytes after the request
head raise `ProtocolError`. The optional callback sees the parsed request
and the response about to be sent; it returns the response to accept, or
raises `Reject` with an unsuccessful response to turn the client away. The
rejection, with its body, is sent to the client and then raised as
`HttpError`. Rejecting with a successful (2xx) response raises
`ProtocolError`.

A completed handshake returns a `ServerConnection` with the `stream`, the
`request` and the `response` sent.

`create_response(request)` builds the standard `101` reply,
`create_response_with_body` does the same with a body from a callable,
`try_parse_request` parses a request head, and `write_response` renders a
response head to bytes.

## Headers and helpers

`wshandshake.headers.HeaderMap` is a case-insensitive multimap with
`append`, `insert`, `get`, `get_all` and `remove`; iterating it yields
`(name, value)` pairs with lower-case names. `try_parse_headers` parses a
header block (at most 124 lines), returning `None` while it is incomplete.

```python
from wshandshake.handshake import derive_accept_key

assert derive_accept_key(b"dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="
```

`wshandshake.client_handshake.generate_key()` returns a random 16-byte key,
base64-encoded, for `Sec-WebSocket-Key`.

`wshandshake.buffer.ReadBuffer` is the first-in, first-out byte buffer the
handshake reads into: `read_from(stream)`, `chunk()`, `advance(n)` and
`into_bytes()`.

## Errors

All errors derive from `wshandshake.error.WebSocketError`. `ProtocolError`,
`CapacityError` and `UrlError` carry a `kind` (`ProtocolErrorKind`,
`CapacityErrorKind`, `UrlErrorKind`) so callers can tell the cases apart.
`HttpError` carries the HTTP `response`; `HttpFormatError` reports malformed
header names, values and URIs; `Utf8Error` reports header values that are
not visible ASCII.

## What this package does not do

It covers only the opening handshake. There is no WebSocket frame encoding
or decoding, no sending or receiving of messages, and no closing handshake:
after a successful handshake you get the stream (and, on the client, any
bytes already read past the response) and carry on with the data transfer
yourself. There is no command-line tool and no listening server; accepting
connections is left to the caller.

## Running the tests

    pip install -e ".[test]"
    pytest