"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that a deployed
server runs with sensible defaults, while the automated test-suite (or a local
experiment) can change ports and timings without touching code.  The CLI flags
of ``wisp.server`` and ``wisp.client`` take precedence over the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final


# ===========================================================================
# Network Defaults
# ===========================================================================
# WISP_HOST: Default address for the server to bind to and clients to send to.
#   Defaults to "127.0.0.1".
#   Example: export WISP_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("WISP_HOST", "127.0.0.1")

# WISP_PORT: UDP port the server listens on and clients send to.
#   Defaults to 5000.
#   Example: export WISP_PORT=5001
DEFAULT_PORT: int = int(os.getenv("WISP_PORT", "5000"))

# WISP_RECV_BUFFER: Largest datagram (in bytes) read from the socket in one call.
#   Anything longer is truncated by the OS and then rejected by the decoder.
RECV_BUFFER_SIZE: int = int(os.getenv("WISP_RECV_BUFFER", "4096"))

# WISP_POLL_TIMEOUT: Seconds a single receive call may block before the server
#   loop re-checks its shutdown flag. Keep this small.
POLL_TIMEOUT: float = float(os.getenv("WISP_POLL_TIMEOUT", "0.05"))


# ===========================================================================
# Broadcast Timing
# ===========================================================================
# WISP_TICK_RATE: World snapshots broadcast per second.
#   Defaults to 30.
#   Example: export WISP_TICK_RATE=60
TICK_RATE: float = float(os.getenv("WISP_TICK_RATE", "30"))


# ===========================================================================
# Handshake Redundancy
# ===========================================================================
# WISP_HANDSHAKE_REPEAT: How many copies of each handshake / join reply are sent.
#   UDP gives no delivery guarantee, so the server repeats instead of waiting
#   for acknowledgments. A client needs only one copy to get through.
HANDSHAKE_REPEAT: int = int(os.getenv("WISP_HANDSHAKE_REPEAT", "10"))


# ===========================================================================
# Game Constants
# ===========================================================================
# WISP_STEP_SIZE: Vertical distance a slot moves for one MovePosition request.
STEP_SIZE: float = float(os.getenv("WISP_STEP_SIZE", "0.01"))

# Number of world-position slots. Part of the wire format (three positions are
# always serialized), so it is not environment-tunable.
MAX_PLAYER_SLOTS: Final[int] = 3

# Slot number meaning "not playing" (spectator).
SPECTATOR_SLOT: Final[int] = 0


# ===========================================================================
# Session Reclamation
# ===========================================================================
# WISP_REAP_AFTER: Seconds after which a *Disconnected* session record is
#   dropped from the session table. 0 (the default) keeps records forever.
REAP_AFTER: float = float(os.getenv("WISP_REAP_AFTER", "0"))


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# WISP_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("WISP_DEBUG", "0") == "1"


@dataclass(frozen=True)
class ServerConfig:
    """Runtime settings of one server instance.

    Defaults are taken from the module-level constants above so environment
    overrides apply; the CLI builds an instance with explicit values.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tick_rate: float = TICK_RATE
    handshake_repeat: int = HANDSHAKE_REPEAT
    step_size: float = STEP_SIZE
    recv_buffer_size: int = RECV_BUFFER_SIZE
    poll_timeout: float = POLL_TIMEOUT
    reap_after: float = REAP_AFTER

    @property
    def tick_period(self) -> float:
        return 1.0 / self.tick_rate

    def validate(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"Port out of range: {self.port}")
        if self.tick_rate <= 0:
            raise ValueError("Tick rate must be positive")
        if self.handshake_repeat < 1:
            raise ValueError("Handshake repeat count must be at least 1")
        if self.recv_buffer_size <= 0:
            raise ValueError("Receive buffer size must be positive")
        if self.poll_timeout <= 0:
            raise ValueError("Poll timeout must be positive")
        if self.reap_after < 0:
            raise ValueError("Reap window cannot be negative")
