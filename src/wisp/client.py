"""Headless WISP protocol client.

``GameClient`` is the client half of the handshake and holds no socket, so it
can be driven directly from tests.  ``main()`` wraps it in a small CLI that
connects, optionally claims a slot, and logs the world snapshots it receives.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

from . import config as _cfg
from .codec import ConnectionState, PacketError, Request
from .packets import (
    JoinGameReply,
    ServerPacket,
    VerificationReply,
    WorldSnapshot,
    decode_server_packet,
    encode_client_packet,
)
from .transport import UdpTransport

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.5


class GameClient:
    """Client-side connection state machine.

    World snapshots older than the newest server time already seen are
    discarded, so a late or duplicated datagram never rolls the view back.
    Handshake and join replies are idempotent and always applied: a join
    reply encoded just before a tick may legitimately arrive after it.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = ConnectionState.DISCONNECTED
        self.slot = 0
        self.joined = False
        self.server_time = -1
        self.world: Optional[WorldSnapshot] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------
    def connect_packet(self) -> bytes:
        if self.state is ConnectionState.DISCONNECTED:
            self.state = ConnectionState.CONNECTING
        return encode_client_packet(ConnectionState.CONNECTING, self.name)

    def verification_packet(self) -> bytes:
        return encode_client_packet(ConnectionState.VERIFICATION, self.name)

    def request_packet(self, request: Request = Request.NONE) -> bytes:
        return encode_client_packet(ConnectionState.CONNECTED, self.name, request)

    def move_packet(self, *, up: bool = False, down: bool = False) -> bytes:
        return encode_client_packet(
            ConnectionState.CONNECTED, self.name, Request.MOVE_POSITION, move_up=up, move_down=down
        )

    def spectate_packet(self) -> bytes:
        self.slot = 0
        return self.request_packet(Request.JOIN_SPECTATORS)

    def disconnect_packet(self) -> bytes:
        self.state = ConnectionState.DISCONNECTED
        self.slot = 0
        self.joined = False
        return self.request_packet(Request.DISCONNECT)

    # ------------------------------------------------------------------
    # Incoming
    # ------------------------------------------------------------------
    def handle(self, data: bytes) -> Optional[bytes]:
        """Apply one server datagram; return a datagram to send back, if any."""
        try:
            pkt = decode_server_packet(data)
        except PacketError as exc:
            logger.debug("Dropping malformed server packet: %s", exc)
            return None
        if isinstance(pkt, WorldSnapshot) and pkt.server_time < self.server_time:
            logger.debug("Dropping stale world (t=%d < %d)", pkt.server_time, self.server_time)
            return None
        self.server_time = max(self.server_time, pkt.server_time)
        return self._apply(pkt)

    def _apply(self, pkt: ServerPacket) -> Optional[bytes]:
        if isinstance(pkt, VerificationReply):
            if self.state is ConnectionState.DISCONNECTED:
                return None
            if not self.connected:
                logger.info("Handshake complete as %r", self.name)
            self.state = ConnectionState.CONNECTED
            # Answer every copy: ours may be the datagram that got lost.
            return self.verification_packet()
        if not self.connected:
            return None
        if isinstance(pkt, JoinGameReply):
            self.slot = pkt.slot
            self.joined = True
        elif isinstance(pkt, WorldSnapshot):
            self.world = pkt
        return None


def run(host: str, port: int, name: str, *, join: bool = False, snapshots: int = 0) -> GameClient:
    """Connect to a server and log world snapshots until *snapshots* arrive (0 = forever)."""
    client = GameClient(name)
    server = (host, port)
    received = 0
    with UdpTransport("0.0.0.0", 0, poll_timeout=0.1) as transport:
        last_sent = 0.0
        try:
            while True:
                now = time.monotonic()
                if now - last_sent >= RETRY_INTERVAL:
                    if not client.connected:
                        transport.send_to(client.connect_packet(), server)
                    elif join and not client.joined:
                        transport.send_to(client.request_packet(Request.JOIN_GAME), server)
                    else:
                        transport.send_to(client.request_packet(), server)
                    last_sent = now
                got = transport.recv()
                if got is None:
                    continue
                data, _ = got
                previous = client.world
                reply = client.handle(data)
                if reply is not None:
                    transport.send_to(reply, server)
                if client.world is not previous and client.world is not None:
                    received += 1
                    roster = ", ".join(f"{e.name}:{e.slot}" for e in client.world.roster)
                    logger.info("t=%d slot=%d roster=[%s]", client.server_time, client.slot, roster)
                    if snapshots and received >= snapshots:
                        break
        except KeyboardInterrupt:
            logger.info("Client exiting")
        finally:
            if client.connected:
                transport.send_to(client.disconnect_packet(), server)
    return client


def main(argv: Optional[list[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Headless WISP client")
    parser.add_argument("name", help="Display name (ASCII).")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT)
    parser.add_argument("--join", action="store_true", help="Request a player slot after connecting.")
    parser.add_argument("--snapshots", type=int, default=0, help="Exit after this many world snapshots.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug or _cfg.DEBUG else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    run(args.host, args.port, args.name, join=args.join, snapshots=args.snapshots)


if __name__ == "__main__":  # pragma: no cover
    main()
