"""WISP server runner and command-line entry point.

Two independent triggers drive the server:

• the receive loop (serving thread) – one ``Dispatcher.handle`` per datagram;
• the tick thread – one ``Broadcaster.tick`` every ``1 / tick_rate`` seconds.

Both serialize on ``ServerState.lock``; datagrams are written after the lock
is released.  ``shutdown()`` sets a stop event that both loops check after
each short unit of work.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from typing import Iterable, Optional

from . import config as _cfg
from .broadcaster import Broadcaster
from .config import ServerConfig
from .dispatcher import Dispatcher, Outbound
from .sessions import Address
from .state import Clock, ServerState
from .transport import UdpTransport

logger = logging.getLogger(__name__)


class GameServer:
    """Owns the transport, the server state and the two loops around them."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        *,
        transport=None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or ServerConfig()
        self.config.validate()
        if transport is None:
            transport = UdpTransport(
                self.config.host,
                self.config.port,
                poll_timeout=self.config.poll_timeout,
                bufsize=self.config.recv_buffer_size,
            )
        self.transport = transport
        self.state = ServerState(config=self.config, clock=clock)
        self.dispatcher = Dispatcher(self.state)
        self.broadcaster = Broadcaster(self.state, self.transport)
        self._stop = threading.Event()
        self._tick_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Single steps (also used directly by tests)
    # ------------------------------------------------------------------
    def handle_datagram(self, data: bytes, address: Address) -> None:
        self._send(self.dispatcher.handle(data, address))

    def tick(self) -> None:
        self.broadcaster.tick()
        if self.config.reap_after > 0:
            with self.state.lock:
                reaped = self.state.sessions.reap(self.state.clock(), self.config.reap_after)
            for address in reaped:
                logger.info("Reaped idle disconnected session %s", address)

    def _send(self, outbound: Iterable[Outbound]) -> None:
        for out in outbound:
            for _ in range(out.repeat):
                try:
                    self.transport.send_to(out.data, out.address)
                except OSError as exc:
                    logger.warning("Reply to %s failed: %s", out.address, exc)
                    break

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------
    def _tick_loop(self) -> None:
        period = self.config.tick_period
        deadline = time.monotonic() + period
        while not self._stop.wait(max(0.0, deadline - time.monotonic())):
            try:
                self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Broadcast tick failed")
            deadline += period
            # Skip missed ticks instead of bursting to catch up.
            now = time.monotonic()
            if deadline < now:
                deadline = now + period

    def start_ticking(self) -> None:
        if self._tick_thread is not None:
            return
        self._tick_thread = threading.Thread(target=self._tick_loop, name="wisp-tick", daemon=True)
        self._tick_thread.start()

    def serve_forever(self) -> None:
        """Run the receive loop in the calling thread until ``shutdown()``."""
        self.start_ticking()
        logger.info("WISP server listening on %s:%d", *self.transport.address)
        while not self._stop.is_set():
            got = self.transport.recv()
            if got is None:
                continue
            data, address = got
            try:
                self.handle_datagram(data, address)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to handle datagram from %s", address)
        logger.info("Receive loop stopped")

    def shutdown(self) -> None:
        self._stop.set()

    def close(self) -> None:
        self.shutdown()
        if self._tick_thread is not None:
            self._tick_thread.join(timeout=1.0)
            self._tick_thread = None
        self.transport.close()


def _build_config(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        host=args.host,
        port=args.port,
        tick_rate=args.tick_rate,
        handshake_repeat=args.repeat,
        step_size=args.step,
    )


def main(argv: Optional[list[str]] = None) -> None:  # pragma: no cover – side-effect entrypoint
    parser = argparse.ArgumentParser(description="WISP UDP world-state server")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST, help="Address to bind.")
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT, help="UDP port to bind.")
    parser.add_argument("--tick-rate", type=float, default=_cfg.TICK_RATE, help="World broadcasts per second.")
    parser.add_argument(
        "--repeat",
        type=int,
        default=_cfg.HANDSHAKE_REPEAT,
        help="Copies of each handshake/join reply.",
    )
    parser.add_argument("--step", type=float, default=_cfg.STEP_SIZE, help="Distance of one move request.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity.")
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output.",
    )
    args = parser.parse_args(argv)

    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        server = GameServer(_build_config(args))
    except ValueError as exc:
        parser.error(str(exc))
    except OSError as exc:
        logger.error("Cannot bind %s:%d: %s", args.host, args.port, exc)
        sys.exit(1)

    def _shutdown(signum, frame):
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.shutdown()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        server.serve_forever()
    finally:
        server.close()


if __name__ == "__main__":  # pragma: no cover
    main()
