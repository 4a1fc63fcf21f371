"""Session table: one record per remote address that ever contacted the server.

The table is a plain ``dict`` keyed by the ``(host, port)`` tuple the transport
reports, so lookups are O(1) and iteration follows insertion order.  Broadcast
order therefore depends only on the order clients first appeared.

The table is not thread-safe on its own; callers hold ``ServerState.lock``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .codec import ConnectionState
from .config import MAX_PLAYER_SLOTS, SPECTATOR_SLOT

Address = Tuple[str, int]


@dataclass(slots=True)
class Session:
    address: Address
    name: str
    state: ConnectionState = ConnectionState.CONNECTING
    player_slot: int = SPECTATOR_SLOT
    last_seen: float = 0.0

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def is_playing(self) -> bool:
        return self.player_slot != SPECTATOR_SLOT


class SessionTable:
    """Address → :class:`Session` map with exclusive slot ownership."""

    def __init__(self, max_slots: int = MAX_PLAYER_SLOTS) -> None:
        self.max_slots = max_slots
        self._sessions: Dict[Address, Session] = {}
        # slot -> address of the owning session
        self._owners: Dict[int, Address] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, address: object) -> bool:
        return address in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def get(self, address: Address) -> Optional[Session]:
        return self._sessions.get(address)

    def get_or_create(self, address: Address, name: str) -> Tuple[Session, bool]:
        session = self._sessions.get(address)
        if session is not None:
            return session, False
        session = Session(address, name)
        self._sessions[address] = session
        return session, True

    def remove(self, address: Address) -> Optional[Session]:
        session = self._sessions.pop(address, None)
        if session is not None:
            self.release_slot(session)
        return session

    # ------------------------------------------------------------------
    # Connected sessions
    # ------------------------------------------------------------------
    def connected(self) -> List[Session]:
        """Connected sessions in insertion order."""
        return [s for s in self._sessions.values() if s.is_connected]

    def for_each_connected(self, fn: Callable[[Session], None]) -> None:
        for session in self.connected():
            fn(session)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------
    def slot_owner(self, slot: int) -> Optional[Session]:
        address = self._owners.get(slot)
        return None if address is None else self._sessions.get(address)

    def assign_slot(self, session: Session) -> int:
        """Give *session* the lowest free slot; return it, or 0 when all are taken.

        A session that already holds a slot keeps it.
        """
        if session.is_playing:
            return session.player_slot
        for slot in range(1, self.max_slots + 1):
            if slot not in self._owners:
                self._owners[slot] = session.address
                session.player_slot = slot
                return slot
        return SPECTATOR_SLOT

    def release_slot(self, session: Session) -> None:
        slot = session.player_slot
        if slot != SPECTATOR_SLOT and self._owners.get(slot) == session.address:
            del self._owners[slot]
        session.player_slot = SPECTATOR_SLOT

    # ------------------------------------------------------------------
    # Reclamation
    # ------------------------------------------------------------------
    def reap(self, now: float, idle_after: float) -> List[Address]:
        """Drop Disconnected sessions not heard from for *idle_after* seconds."""
        stale = [
            s.address
            for s in self._sessions.values()
            if s.state is ConnectionState.DISCONNECTED and now - s.last_seen >= idle_after
        ]
        for address in stale:
            self.remove(address)
        return stale
