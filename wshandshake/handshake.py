"""WebSocket handshake control: the driver loop and accept-key derivation."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, Union

from .machine import (
    HandshakeMachine,
    Incomplete,
    StageFinished,
    StageResult,
    TryParse,
    WouldBlock,
)

R = TypeVar("R")

_WS_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def derive_accept_key(request_key: bytes | str) -> str:
    """Derive the ``Sec-WebSocket-Accept`` value from a ``Sec-WebSocket-Key`` value."""
    if isinstance(request_key, str):
        request_key = request_key.encode("latin-1")
    digest = hashlib.sha1(bytes(request_key) + _WS_GUID).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass
class Continue:
    """The stage is done; the handshake goes on with ``machine``."""

    machine: HandshakeMachine


@dataclass
class Done(Generic[R]):
    """The handshake is complete with ``result``."""

    result: R


ProcessingResult = Union[Continue, Done]


class HandshakeRole(Protocol):
    """The side of a handshake: how to parse incoming data and what to do after each stage."""

    try_parse: TryParse

    def stage_finished(self, finish: StageResult) -> ProcessingResult:
        ...


class HandshakeInterrupted(Exception):
    """The handshake would block; call ``mid_handshake.handshake()`` again later."""

    def __init__(self, mid_handshake: MidHandshake) -> None:
        self.mid_handshake = mid_handshake
        super().__init__("Interrupted handshake (WouldBlock)")


class MidHandshake:
    """A handshake in progress."""

    def __init__(self, role: Any, machine: HandshakeMachine) -> None:
        self.role = role
        self.machine = machine

    def handshake(self) -> Any:
        """Drive the handshake until it completes.

        Returns the role's final result. Raises HandshakeInterrupted when the
        stream would block, and WebSocketError when the handshake fails.
        """
        while True:
            outcome = self.machine.single_round(self.role.try_parse)
            if isinstance(outcome, WouldBlock):
                self.machine = outcome.machine
                raise HandshakeInterrupted(self)
            if isinstance(outcome, Incomplete):
                self.machine = outcome.machine
                continue
            if isinstance(outcome, StageFinished):
                processed = self.role.stage_finished(outcome.stage)
                if isinstance(processed, Continue):
                    self.machine = processed.machine
                    continue
                if isinstance(processed, Done):
                    return processed.result
                raise TypeError(f"unexpected stage outcome {processed!r}")
            raise TypeError(f"unexpected round outcome {outcome!r}")