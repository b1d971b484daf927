"""HTTP header maps, request and response values and header parsing."""

from __future__ import annotations

import string
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from .error import (
    CapacityError,
    CapacityErrorKind,
    HttpFormatError,
    ProtocolError,
    ProtocolErrorKind,
)

MAX_HEADERS = 124
"""Limit for the number of header lines."""

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")
_TOKEN_BYTES = frozenset(_TOKEN_CHARS.__iter__().__class__ and c.encode()[0] for c in _TOKEN_CHARS)


def _valid_value_code(code: int) -> bool:
    return code == 9 or (code >= 32 and code != 127)


class HeaderMap:
    """A case-insensitive multimap of HTTP headers.

    Names are stored in lower case. Iteration yields ``(name, value)`` pairs,
    grouped by name in the order each name was first added.
    """

    def __init__(self, items: Mapping[str, str] | Iterable[tuple[str, str]] | None = None) -> None:
        self._entries: dict[str, list[str]] = {}
        if items is not None:
            pairs = items.items() if isinstance(items, Mapping) else items
            for name, value in pairs:
                self.append(name, value)

    @staticmethod
    def _name(name: str) -> str:
        if not name or any(c not in _TOKEN_CHARS for c in name):
            raise HttpFormatError(f"invalid HTTP header name {name!r}")
        return name.lower()

    @staticmethod
    def _value(value: str | bytes) -> str:
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("latin-1")
        if any(not _valid_value_code(ord(c)) for c in value):
            raise HttpFormatError(f"invalid HTTP header value {value!r}")
        return value

    def append(self, name: str, value: str | bytes) -> None:
        """Add a value, keeping any values already present for ``name``."""
        self._entries.setdefault(self._name(name), []).append(self._value(value))

    def insert(self, name: str, value: str | bytes) -> str | None:
        """Replace all values of ``name``; return the previous first value."""
        key = self._name(name)
        checked = self._value(value)
        previous = self._entries.get(key)
        self._entries[key] = [checked]
        return previous[0] if previous else None

    def get(self, name: str, default: Any = None) -> Any:
        """Return the first value of ``name`` or ``default``."""
        values = self._entries.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        """Return every value of ``name`` in insertion order."""
        return list(self._entries.get(name.lower(), ()))

    def remove(self, name: str) -> str | None:
        """Remove all values of ``name``; return the first one, or None."""
        values = self._entries.pop(name.lower(), None)
        return values[0] if values else None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for name, values in list(self._entries.items()):
            for value in values:
                yield name, value

    def __len__(self) -> int:
        return sum(len(values) for values in self._entries.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"HeaderMap({list(self)!r})"


@dataclass
class HttpRequest:
    """An HTTP request head; ``version`` is a ``(major, minor)`` pair."""

    method: str = "GET"
    uri: str = "/"
    version: tuple[int, int] = (1, 1)
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: Any = None


@dataclass
class HttpResponse:
    """An HTTP response head with an optional body."""

    status: int = 200
    version: tuple[int, int] = (1, 1)
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: Any = None

    @property
    def reason(self) -> str:
        """The canonical reason phrase of the status, or an empty string."""
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""

    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def is_redirection(self) -> bool:
        return 300 <= self.status < 400


def parse_header_lines(data: bytes, start: int = 0) -> tuple[int, HeaderMap] | None:
    """Parse header lines beginning at offset ``start``.

    Returns ``(end, headers)`` where ``end`` is the offset just past the
    blank line that ends the block, or None if the block is incomplete.
    """
    data = bytes(data)
    headers = HeaderMap()
    position = start
    count = 0
    while True:
        end = data.find(b"\n", position)
        if end < 0:
            return None
        line = data[position:end]
        position = end + 1
        if line.endswith(b"\r"):
            line = line[:-1]
        if not line:
            return position, headers
        if count == MAX_HEADERS:
            raise CapacityError(CapacityErrorKind.TOO_MANY_HEADERS)
        name, sep, value = line.partition(b":")
        if not sep or not name or any(b not in _TOKEN_BYTES for b in name):
            raise ProtocolError(ProtocolErrorKind.HTTP_PARSE, "invalid header name")
        value = value.strip(b" \t")
        if not all(_valid_value_code(b) for b in value):
            raise ProtocolError(ProtocolErrorKind.HTTP_PARSE, "invalid header value")
        headers.append(name.decode("ascii"), value.decode("latin-1"))
        count += 1


def try_parse_headers(data: bytes) -> tuple[int, HeaderMap] | None:
    """Parse a header block at the start of ``data``."""
    return parse_header_lines(data, 0)