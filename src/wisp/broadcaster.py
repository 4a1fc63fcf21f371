"""Send path: one world snapshot per tick, fanned out to every Connected session."""

from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

from .packets import encode_world
from .sessions import Address
from .state import ServerState

logger = logging.getLogger(__name__)


class DatagramSender(Protocol):
    def send_to(self, data: bytes, address: Address) -> None: ...


class Broadcaster:
    """Build the world packet under the state lock, send it outside."""

    def __init__(self, state: ServerState, sender: DatagramSender) -> None:
        self.state = state
        self.sender = sender

    def build(self) -> Tuple[bytes, List[Address]]:
        """Refresh the server clock and encode the world once.

        Returns the payload and the recipients, snapshotted under the lock so
        the send loop never reads shared state.
        """
        with self.state.lock:
            world = self.state.world
            server_time = world.refresh_time(self.state.clock())
            connected = self.state.sessions.connected()
            roster = [(s.name, s.player_slot) for s in connected]
            data = encode_world(server_time, world.positions, roster)
            return data, [s.address for s in connected]

    def tick(self) -> int:
        """Run one broadcast; return how many sends succeeded."""
        data, recipients = self.build()
        delivered = 0
        for address in recipients:
            try:
                self.sender.send_to(data, address)
            except OSError as exc:
                logger.warning("World broadcast to %s failed: %s", address, exc)
                continue
            delivered += 1
        return delivered
