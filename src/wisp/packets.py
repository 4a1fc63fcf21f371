"""Packet layouts of the WISP protocol built on :mod:`wisp.codec`.

Client → Server
---------------
Connecting      state(u16)=1  name(str)
Verification    state(u16)=2  name(str)
Connected       state(u16)=3  name(str)  request(u16)  [body]
  MovePosition body: move_up(bool) move_down(bool)

Server → Client
---------------
Verification    server_time(i64)  state=2
JoinGame        server_time(i64)  state=3  request=2  slot(u16)
World           server_time(i64)  state=3  request=0  3 × (x, y, z f32)
                connected(i32)  connected × (name(str) slot(u16))

Client packets never carry a server time; server packets always do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple, Union

from .codec import (
    ConnectionState,
    MalformedPacketError,
    PacketReader,
    PacketWriter,
    Request,
    UnknownCodeError,
)
from .config import MAX_PLAYER_SLOTS

Vector3 = Tuple[float, float, float]

# States a client may legitimately put in a packet header.
CLIENT_STATES = frozenset(
    {ConnectionState.CONNECTING, ConnectionState.VERIFICATION, ConnectionState.CONNECTED}
)


# ---------------------------------------------------------------------------
# Client → Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientPacket:
    """One decoded client datagram."""

    state: ConnectionState
    name: str
    request: Request | None = None
    move_up: bool = False
    move_down: bool = False


def encode_client_packet(
    state: ConnectionState,
    name: str,
    request: Request | None = None,
    *,
    move_up: bool = False,
    move_down: bool = False,
) -> bytes:
    w = PacketWriter().u16(state).string(name)
    if state is ConnectionState.CONNECTED:
        req = Request.NONE if request is None else request
        w.u16(req)
        if req is Request.MOVE_POSITION:
            w.boolean(move_up).boolean(move_down)
    return w.getvalue()


def decode_client_packet(data: bytes) -> ClientPacket:
    """Parse a whole client datagram or raise a :class:`~wisp.codec.PacketError`."""
    r = PacketReader(data)
    state = r.enum(ConnectionState)
    name = r.string()
    if state is not ConnectionState.CONNECTED:
        return ClientPacket(state, name)
    request = r.enum(Request)
    if request is Request.MOVE_POSITION:
        move_up = r.boolean()
        move_down = r.boolean()
        return ClientPacket(state, name, request, move_up, move_down)
    return ClientPacket(state, name, request)


# ---------------------------------------------------------------------------
# Server → Client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RosterEntry:
    name: str
    slot: int


@dataclass(frozen=True)
class VerificationReply:
    server_time: int


@dataclass(frozen=True)
class JoinGameReply:
    server_time: int
    slot: int


@dataclass(frozen=True)
class WorldSnapshot:
    server_time: int
    positions: Tuple[Vector3, ...]
    roster: Tuple[RosterEntry, ...]


ServerPacket = Union[VerificationReply, JoinGameReply, WorldSnapshot]


def encode_verification(server_time: int) -> bytes:
    return PacketWriter().i64(server_time).u16(ConnectionState.VERIFICATION).getvalue()


def encode_join_game(server_time: int, slot: int) -> bytes:
    return (
        PacketWriter()
        .i64(server_time)
        .u16(ConnectionState.CONNECTED)
        .u16(Request.JOIN_GAME)
        .u16(slot)
        .getvalue()
    )


def encode_world(
    server_time: int,
    positions: Sequence[Sequence[float]],
    roster: Iterable[Tuple[str, int]],
) -> bytes:
    """Serialize a world snapshot; *positions* is indexed by ``slot - 1``."""
    if len(positions) != MAX_PLAYER_SLOTS:
        raise ValueError(f"expected {MAX_PLAYER_SLOTS} positions, got {len(positions)}")
    w = PacketWriter().i64(server_time).u16(ConnectionState.CONNECTED).u16(Request.NONE)
    for x, y, z in positions:
        w.f32(x).f32(y).f32(z)
    entries = list(roster)
    w.i32(len(entries))
    for name, slot in entries:
        w.string(name).u16(slot)
    return w.getvalue()


def decode_server_packet(data: bytes) -> ServerPacket:
    """Parse a server datagram as seen by a client."""
    r = PacketReader(data)
    server_time = r.i64()
    state = r.enum(ConnectionState)
    if state is ConnectionState.VERIFICATION:
        return VerificationReply(server_time)
    if state is not ConnectionState.CONNECTED:
        raise UnknownCodeError(f"server never sends state {state.name}")
    request = r.enum(Request)
    if request is Request.JOIN_GAME:
        return JoinGameReply(server_time, r.u16())
    if request is not Request.NONE:
        raise UnknownCodeError(f"server never sends request {request.name}")
    positions = tuple((r.f32(), r.f32(), r.f32()) for _ in range(MAX_PLAYER_SLOTS))
    count = r.i32()
    if count < 0:
        raise MalformedPacketError(f"negative roster count {count}")
    roster = tuple(RosterEntry(r.string(), r.u16()) for _ in range(count))
    return WorldSnapshot(server_time, positions, roster)
