"""Wire formats exchanged between the game streamer and the receiver."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from enum import IntEnum

__all__ = [
    "GAME_HOST",
    "GAME_PORT",
    "RECEIVER_PORT",
    "MAX_UDP_PACKET_SIZE",
    "RT_HEADER_SIZE",
    "FRAGMENT_HEADER_SIZE",
    "HEADER_SIZE",
    "ProtocolError",
    "Scancode",
    "FragmentHeader",
    "Datagram",
    "ReceiverReport",
    "NakPacket",
    "KeyCommand",
]

GAME_HOST = "::1"
GAME_PORT = 8888
RECEIVER_PORT = 9999
MAX_UDP_PACKET_SIZE = 65536

_RT_HEADER = struct.Struct("<dI4x")
_FRAGMENT_HEADER = struct.Struct("<IHH")
_REPORT = struct.Struct("<dIIIf")
_NAK = struct.Struct("<IH")

RT_HEADER_SIZE = _RT_HEADER.size
FRAGMENT_HEADER_SIZE = _FRAGMENT_HEADER.size
HEADER_SIZE = RT_HEADER_SIZE + FRAGMENT_HEADER_SIZE

_KEY_PATTERN = re.compile(
    r"\s*\+?(\d+):\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)


class ProtocolError(ValueError):
    """Raised for a packet that cannot be built or parsed."""


class Scancode(IntEnum):
    """Keyboard scancodes that the game reacts to."""

    A = 4
    D = 7
    S = 22
    W = 26
    ESCAPE = 41
    SPACE = 44
    RIGHT = 79
    LEFT = 80


def _pack(layout: struct.Struct, *values) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise ProtocolError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


@dataclass(frozen=True)
class FragmentHeader:
    """Position of one fragment within an encoded frame."""

    frame_id: int
    total_fragments: int
    fragment_index: int

    def pack(self) -> bytes:
        return _pack(_FRAGMENT_HEADER, self.frame_id, self.total_fragments, self.fragment_index)

    @classmethod
    def unpack(cls, data: bytes) -> FragmentHeader:
        return cls(*_unpack(_FRAGMENT_HEADER, data, "fragment header"))


@dataclass(frozen=True)
class Datagram:
    """A timed, numbered packet carrying one fragment of a frame."""

    time: float
    packet_number: int
    fragment: FragmentHeader
    payload: bytes = b""

    def pack(self) -> bytes:
        return (
            _pack(_RT_HEADER, self.time, self.packet_number)
            + self.fragment.pack()
            + bytes(self.payload)
        )

    @classmethod
    def unpack(cls, data: bytes) -> Datagram:
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise ProtocolError(f"datagram needs at least {HEADER_SIZE} bytes, got {len(data)}")
        time, packet_number = _RT_HEADER.unpack_from(data)
        fragment = FragmentHeader.unpack(data[RT_HEADER_SIZE:HEADER_SIZE])
        return cls(time, packet_number, fragment, data[HEADER_SIZE:])


@dataclass(frozen=True)
class ReceiverReport:
    """Traffic statistics the receiver sends back periodically."""

    timestamp: float
    bytes_received: int
    expected_packets: int
    received_packets: int
    frame_rate: float

    def pack(self) -> bytes:
        return _pack(
            _REPORT,
            self.timestamp,
            self.bytes_received,
            self.expected_packets,
            self.received_packets,
            self.frame_rate,
        )

    @classmethod
    def unpack(cls, data: bytes) -> ReceiverReport:
        return cls(*_unpack(_REPORT, data, "receiver report"))


@dataclass(frozen=True)
class NakPacket:
    """Request to resend one missing fragment."""

    frame_id: int
    missing_index: int

    def pack(self) -> bytes:
        return _pack(_NAK, self.frame_id, self.missing_index)

    @classmethod
    def unpack(cls, data: bytes) -> NakPacket:
        return cls(*_unpack(_NAK, data, "NAK packet"))


@dataclass(frozen=True)
class KeyCommand:
    """A key press forwarded to the game as ``"<scancode>:<dt>"`` text."""

    scancode: int
    dt: float

    def encode(self) -> bytes:
        code = int(self.scancode)
        if not 0 <= code <= 0xFF:
            raise ProtocolError(f"scancode {code} does not fit in one byte")
        return f"{code}:{self.dt:.3f}".encode("ascii")

    @classmethod
    def decode(cls, data: bytes) -> KeyCommand:
        text = bytes(data).split(b"\0", 1)[0].decode("ascii", errors="replace")
        match = _KEY_PATTERN.match(text)
        if match is None:
            raise ProtocolError(f"malformed key command {text!r}")
        code = int(match.group(1))
        if code > 0xFFFFFFFF:
            raise ProtocolError(f"scancode {code} out of range")
        return cls(code, float(match.group(2)))