"""A first-in, first-out buffer filled from a readable stream."""

from __future__ import annotations

from typing import Any

DEFAULT_CHUNK_SIZE = 4096


class ReadBuffer:
    """Bytes read from a stream and not yet consumed.

    Data is appended by :meth:`read_from`, inspected with :meth:`chunk`
    and consumed with :meth:`advance`.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, initial: bytes = b"") -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self._storage = bytearray(initial)
        self._position = 0

    def read_from(self, stream: Any) -> int:
        """Read at most one chunk from ``stream``; return the number of bytes read.

        Raises BlockingIOError if a non-blocking stream has nothing to offer.
        """
        self._clean_up()
        data = stream.read(self.chunk_size)
        if data is None:
            raise BlockingIOError("stream is not ready for reading")
        self._storage += data
        return len(data)

    def chunk(self) -> bytes:
        """Return the unconsumed bytes."""
        return bytes(self._storage[self._position:])

    def remaining(self) -> int:
        """Return the number of unconsumed bytes."""
        return len(self._storage) - self._position

    def advance(self, count: int) -> None:
        """Consume ``count`` bytes."""
        if count < 0 or count > self.remaining():
            raise ValueError(f"cannot advance by {count}, {self.remaining()} bytes remaining")
        self._position += count

    def into_bytes(self) -> bytes:
        """Drop the consumed part and return the rest."""
        self._clean_up()
        return bytes(self._storage)

    def __len__(self) -> int:
        return self.remaining()

    def _clean_up(self) -> None:
        del self._storage[: self._position]
        self._position = 0