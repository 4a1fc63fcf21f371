"""The single explicit value holding all mutable server state."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from .config import ServerConfig
from .sessions import SessionTable
from .world import WorldState

Clock = Callable[[], float]


@dataclass
class ServerState:
    """Session table, world state and the lock that serializes them.

    Both the receive path and the broadcast tick take ``lock`` for the whole
    of their read-modify step; nothing else touches ``sessions`` or ``world``.
    ``clock`` is injectable so tests can replay a run deterministically.
    """

    config: ServerConfig = field(default_factory=ServerConfig)
    clock: Clock = time.monotonic
    sessions: SessionTable = field(default_factory=SessionTable)
    world: WorldState = field(init=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.world = WorldState(started_at=self.clock())
