"""Primitive wire codec for the WISP datagram protocol.

Every packet is a flat concatenation of the primitives below, all in
little-endian byte order:

u16   : enum code (connection state, request, player slot)
i32   : signed integer, also the length prefix of strings
i64   : server time in 100 ns ticks
f32   : IEEE-754 single precision float
bool  : one byte, 0 = False, anything else = True
str   : i32 length followed by that many ASCII bytes (no terminator)

Decoding works on an explicit cursor so several values can be read from one
buffer: ``decode_xxx(buf, cursor) -> (value, new_cursor)``.  Any read that
would run past the end of the buffer raises :class:`TruncatedPacketError`.
"""

from __future__ import annotations

import enum
import struct
from typing import Final, Tuple, Type, TypeVar

BYTE_ORDER: Final[str] = "<"

_U16 = struct.Struct(BYTE_ORDER + "H")
_I32 = struct.Struct(BYTE_ORDER + "i")
_I64 = struct.Struct(BYTE_ORDER + "q")
_F32 = struct.Struct(BYTE_ORDER + "f")
_BOOL = struct.Struct(BYTE_ORDER + "?")

E = TypeVar("E", bound=enum.IntEnum)


class ConnectionState(enum.IntEnum):
    """Connection state codes carried in every packet header."""

    DISCONNECTED = 0
    CONNECTING = 1
    VERIFICATION = 2
    CONNECTED = 3


class Request(enum.IntEnum):
    """Request codes trailing a Connected-state header."""

    NONE = 0
    DISCONNECT = 1
    JOIN_GAME = 2
    JOIN_SPECTATORS = 3
    MOVE_POSITION = 4


class PacketError(Exception):
    """Base for every problem found while decoding a datagram."""


class TruncatedPacketError(PacketError):
    """Raised when a field extends past the end of the buffer."""


class MalformedPacketError(PacketError):
    """Raised when a field is present but its contents are invalid."""


class UnknownCodeError(PacketError):
    """Raised when an enum field holds a code outside its enumeration."""


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _unpack(fmt: struct.Struct, buf: bytes, cursor: int) -> Tuple[object, int]:
    end = cursor + fmt.size
    if cursor < 0 or end > len(buf):
        raise TruncatedPacketError(f"need {fmt.size} bytes at offset {cursor}, buffer has {len(buf)}")
    (value,) = fmt.unpack_from(buf, cursor)
    return value, end


def decode_u16(buf: bytes, cursor: int) -> Tuple[int, int]:
    return _unpack(_U16, buf, cursor)  # type: ignore[return-value]


def decode_i32(buf: bytes, cursor: int) -> Tuple[int, int]:
    return _unpack(_I32, buf, cursor)  # type: ignore[return-value]


def decode_i64(buf: bytes, cursor: int) -> Tuple[int, int]:
    return _unpack(_I64, buf, cursor)  # type: ignore[return-value]


def decode_f32(buf: bytes, cursor: int) -> Tuple[float, int]:
    return _unpack(_F32, buf, cursor)  # type: ignore[return-value]


def decode_bool(buf: bytes, cursor: int) -> Tuple[bool, int]:
    return _unpack(_BOOL, buf, cursor)  # type: ignore[return-value]


def decode_str(buf: bytes, cursor: int) -> Tuple[str, int]:
    length, cursor = decode_i32(buf, cursor)
    if length < 0:
        raise MalformedPacketError(f"negative string length {length}")
    end = cursor + length
    if end > len(buf):
        raise TruncatedPacketError(f"string of {length} bytes overruns buffer at offset {cursor}")
    try:
        text = bytes(buf[cursor:end]).decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedPacketError("string is not ASCII") from exc
    return text, end


def decode_enum(enum_cls: Type[E], buf: bytes, cursor: int) -> Tuple[E, int]:
    code, cursor = decode_u16(buf, cursor)
    try:
        return enum_cls(code), cursor
    except ValueError as exc:
        raise UnknownCodeError(f"unknown {enum_cls.__name__} code {code}") from exc


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_u16(value: int) -> bytes:
    return _U16.pack(int(value))


def encode_i32(value: int) -> bytes:
    return _I32.pack(value)


def encode_i64(value: int) -> bytes:
    return _I64.pack(value)


def encode_f32(value: float) -> bytes:
    return _F32.pack(value)


def encode_bool(value: bool) -> bytes:
    return _BOOL.pack(bool(value))


def encode_str(text: str) -> bytes:
    raw = text.encode("ascii")
    return _I32.pack(len(raw)) + raw


class PacketWriter:
    """Accumulate primitives into one datagram payload."""

    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def u16(self, value: int) -> "PacketWriter":
        self._parts.append(encode_u16(value))
        return self

    def i32(self, value: int) -> "PacketWriter":
        self._parts.append(encode_i32(value))
        return self

    def i64(self, value: int) -> "PacketWriter":
        self._parts.append(encode_i64(value))
        return self

    def f32(self, value: float) -> "PacketWriter":
        self._parts.append(encode_f32(value))
        return self

    def boolean(self, value: bool) -> "PacketWriter":
        self._parts.append(encode_bool(value))
        return self

    def string(self, text: str) -> "PacketWriter":
        self._parts.append(encode_str(text))
        return self

    def raw(self, data: bytes) -> "PacketWriter":
        self._parts.append(bytes(data))
        return self

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class PacketReader:
    """Cursor over a received datagram."""

    def __init__(self, buf: bytes, cursor: int = 0) -> None:
        self.buf = buf
        self.cursor = cursor

    @property
    def remaining(self) -> int:
        return len(self.buf) - self.cursor

    def u16(self) -> int:
        value, self.cursor = decode_u16(self.buf, self.cursor)
        return value

    def i32(self) -> int:
        value, self.cursor = decode_i32(self.buf, self.cursor)
        return value

    def i64(self) -> int:
        value, self.cursor = decode_i64(self.buf, self.cursor)
        return value

    def f32(self) -> float:
        value, self.cursor = decode_f32(self.buf, self.cursor)
        return value

    def boolean(self) -> bool:
        value, self.cursor = decode_bool(self.buf, self.cursor)
        return value

    def string(self) -> str:
        value, self.cursor = decode_str(self.buf, self.cursor)
        return value

    def enum(self, enum_cls: Type[E]) -> E:
        value, self.cursor = decode_enum(enum_cls, self.buf, self.cursor)
        return value


__all__ = [
    "BYTE_ORDER",
    "ConnectionState",
    "Request",
    "PacketError",
    "TruncatedPacketError",
    "MalformedPacketError",
    "UnknownCodeError",
    "PacketWriter",
    "PacketReader",
    "decode_u16",
    "decode_i32",
    "decode_i64",
    "decode_f32",
    "decode_bool",
    "decode_str",
    "decode_enum",
    "encode_u16",
    "encode_i32",
    "encode_i64",
    "encode_f32",
    "encode_bool",
    "encode_str",
]
