"""WebSocket opening handshake for clients and servers over any byte stream."""

__version__ = "0.1.0"