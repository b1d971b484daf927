"""A generic state machine for one read or write stage of a handshake."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from .buffer import ReadBuffer
from .error import ProtocolError, ProtocolErrorKind

T = TypeVar("T")

TryParse = Callable[[bytes], Optional[tuple]]


@dataclass
class DoneReading(Generic[T]):
    """A reading stage finished: ``result`` was parsed, ``tail`` followed it."""

    result: T
    stream: Any
    tail: bytes


@dataclass
class DoneWriting:
    """A writing stage finished."""

    stream: Any


StageResult = Union[DoneReading, DoneWriting]


@dataclass
class WouldBlock:
    """The round made no progress because the stream would block."""

    machine: HandshakeMachine


@dataclass
class Incomplete:
    """The round made progress but the stage is not finished."""

    machine: HandshakeMachine


@dataclass
class StageFinished:
    """The stage is complete."""

    stage: StageResult


RoundResult = Union[WouldBlock, Incomplete, StageFinished]


class HandshakeMachine:
    """Reads a parseable object from, or writes bytes to, a stream.

    The stream needs ``read(n)`` and ``write(data)``. A non-blocking stream
    signals that it is not ready by raising BlockingIOError or returning None.
    """

    def __init__(
        self,
        stream: Any,
        buffer: ReadBuffer | None = None,
        outgoing: bytes | None = None,
    ) -> None:
        if (buffer is None) == (outgoing is None):
            raise ValueError("exactly one of buffer and outgoing must be given")
        self.stream = stream
        self._buffer = buffer
        self._outgoing = bytes(outgoing) if outgoing is not None else None
        self._written = 0

    @classmethod
    def start_read(cls, stream: Any) -> HandshakeMachine:
        """Start reading data from the peer."""
        return cls(stream, buffer=ReadBuffer())

    @classmethod
    def start_write(cls, stream: Any, data: bytes) -> HandshakeMachine:
        """Start writing ``data`` to the peer."""
        return cls(stream, outgoing=data)

    def single_round(self, try_parse: TryParse) -> RoundResult:
        """Perform one read or write on the stream.

        ``try_parse`` takes the bytes read so far and returns None while they
        are incomplete, or ``(size, obj)`` once an object has been parsed.
        """
        if self._buffer is not None:
            return self._read_round(self._buffer, try_parse)
        return self._write_round()

    def _read_round(self, buffer: ReadBuffer, try_parse: TryParse) -> RoundResult:
        try:
            size = buffer.read_from(self.stream)
        except BlockingIOError:
            return WouldBlock(self)
        if size == 0:
            raise ProtocolError(ProtocolErrorKind.HANDSHAKE_INCOMPLETE)
        parsed = try_parse(buffer.chunk())
        if parsed is None:
            return Incomplete(self)
        consumed, obj = parsed
        buffer.advance(consumed)
        return StageFinished(DoneReading(obj, self.stream, buffer.into_bytes()))

    def _write_round(self) -> RoundResult:
        assert self._outgoing is not None
        pending = self._outgoing[self._written:]
        if not pending:
            raise RuntimeError("nothing left to write")
        try:
            size = self.stream.write(pending)
        except BlockingIOError:
            return WouldBlock(self)
        if size is None:
            return WouldBlock(self)
        if size <= 0:
            raise OSError("stream accepted no data")
        self._written += size
        if self._written < len(self._outgoing):
            return Incomplete(self)
        return StageFinished(DoneWriting(self.stream))