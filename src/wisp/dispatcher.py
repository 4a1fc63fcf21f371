"""Receive path: decode a datagram and advance its session's state machine.

Per-session transitions
-----------------------
(unseen)      any client packet  → Connecting, reply Verification ×N
Connecting    Connecting         → (duplicate) reply Verification ×N again
Connecting    Verification       → Connected
Disconnected  Connecting         → Connecting, reply Verification ×N
Connected     Connected+request  → request handler (see ``_on_request``)

Every other combination is dropped.  Handlers are idempotent or guarded by the
current state, so duplicated, reordered or lost datagrams never corrupt the
session table or the world.  The dispatcher only computes replies; the caller
sends them after the lock is released.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple

from .codec import ConnectionState, PacketError, Request
from .packets import CLIENT_STATES, ClientPacket, decode_client_packet, encode_join_game, encode_verification
from .sessions import Address, Session
from .state import ServerState

logger = logging.getLogger(__name__)


class Outbound(NamedTuple):
    """A datagram to send *repeat* times to *address*."""

    data: bytes
    address: Address
    repeat: int = 1


def move_direction(move_up: bool, move_down: bool) -> int:
    if move_up and not move_down:
        return 1
    if move_down and not move_up:
        return -1
    return 0


class Dispatcher:
    """Session-state machine bound to one :class:`ServerState`."""

    def __init__(self, state: ServerState) -> None:
        self.state = state

    # ------------------------------------------------------------------
    # Public entry
    # ------------------------------------------------------------------
    def handle(self, data: bytes, address: Address) -> List[Outbound]:
        """Process one datagram; return the replies it triggers."""
        try:
            pkt = decode_client_packet(data)
        except PacketError as exc:
            logger.debug("Dropping malformed packet from %s: %s", address, exc)
            return []
        if pkt.state not in CLIENT_STATES:
            logger.debug("Dropping packet with state %s from %s", pkt.state.name, address)
            return []
        with self.state.lock:
            return self._dispatch(pkt, address)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _dispatch(self, pkt: ClientPacket, address: Address) -> List[Outbound]:
        sessions = self.state.sessions
        session, is_new = sessions.get_or_create(address, pkt.name)
        # Stray datagrams must not keep a disconnected record alive.
        if session.state is not ConnectionState.DISCONNECTED or pkt.state is ConnectionState.CONNECTING:
            session.last_seen = self.state.clock()
        if is_new:
            logger.info("New session %r from %s", pkt.name, address)
            return self._verification(session)

        current = session.state
        if current is ConnectionState.CONNECTING:
            if pkt.state is ConnectionState.CONNECTING:
                session.name = pkt.name
                return self._verification(session)
            if pkt.state is ConnectionState.VERIFICATION:
                session.state = ConnectionState.CONNECTED
                logger.info("Session %r at %s connected", session.name, address)
                return []
        elif current is ConnectionState.DISCONNECTED:
            if pkt.state is ConnectionState.CONNECTING:
                session.name = pkt.name
                session.state = ConnectionState.CONNECTING
                logger.info("Session %r at %s reconnecting", session.name, address)
                return self._verification(session)
        elif current is ConnectionState.CONNECTED:
            if pkt.state is ConnectionState.CONNECTED:
                return self._on_request(session, pkt)
        else:  # pragma: no cover
            raise AssertionError(f"session stored in wire-only state {current!r}")

        logger.debug("Ignoring %s packet for %s session %s", pkt.state.name, current.name, address)
        return []

    def _on_request(self, session: Session, pkt: ClientPacket) -> List[Outbound]:
        req = pkt.request
        if req is Request.NONE:
            return []
        if req is Request.JOIN_GAME:
            return self._join_game(session)
        if req is Request.JOIN_SPECTATORS:
            if session.is_playing:
                logger.info("Session %r left slot %d to spectate", session.name, session.player_slot)
            self.state.sessions.release_slot(session)
            return []
        if req is Request.DISCONNECT:
            self.state.sessions.release_slot(session)
            session.state = ConnectionState.DISCONNECTED
            logger.info("Session %r at %s disconnected", session.name, session.address)
            return []
        if req is Request.MOVE_POSITION:
            self._move(session, pkt)
            return []
        raise AssertionError(f"unhandled request {req!r}")  # pragma: no cover

    # ------------------------------------------------------------------
    # Request handlers
    # ------------------------------------------------------------------
    def _join_game(self, session: Session) -> List[Outbound]:
        had_slot = session.is_playing
        slot = self.state.sessions.assign_slot(session)
        if not had_slot:
            if slot:
                logger.info("Session %r joined the game in slot %d", session.name, slot)
            else:
                logger.info("Session %r asked to join but every slot is taken", session.name)
        reply = encode_join_game(self.state.world.server_time, slot)
        return [Outbound(reply, session.address, self.state.config.handshake_repeat)]

    def _move(self, session: Session, pkt: ClientPacket) -> None:
        if not session.is_playing:
            logger.debug("Spectator %r sent a move request; ignored", session.name)
            return
        direction = move_direction(pkt.move_up, pkt.move_down)
        if direction:
            self.state.world.move_vertical(session.player_slot, direction * self.state.config.step_size)

    def _verification(self, session: Session) -> List[Outbound]:
        reply = encode_verification(self.state.world.server_time)
        return [Outbound(reply, session.address, self.state.config.handshake_repeat)]
