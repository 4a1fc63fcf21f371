"""Thin wrapper around one UDP socket."""

from __future__ import annotations

import contextlib
import logging
import socket
from types import TracebackType
from typing import Optional, Tuple, Type

from .sessions import Address

logger = logging.getLogger(__name__)


class UdpTransport:
    """Bounded-wait receive and fire-and-forget send keyed by remote address.

    ``recv`` returns ``None`` when the poll timeout elapses so the caller can
    check for shutdown and immediately call ``recv`` again.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 0, *, poll_timeout: float = 0.05, bufsize: int = 4096):
        self.bufsize = bufsize
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.sock.bind((host, port))
        except OSError:
            self.sock.close()
            raise
        self.sock.settimeout(poll_timeout)

    @property
    def address(self) -> Address:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def recv(self) -> Optional[Tuple[bytes, Address]]:
        try:
            data, addr = self.sock.recvfrom(self.bufsize)
        except socket.timeout:
            return None
        except ConnectionResetError:
            # Windows reports ICMP port-unreachable from an earlier send here.
            logger.debug("Ignoring connection reset on UDP socket")
            return None
        return data, (addr[0], addr[1])

    def send_to(self, data: bytes, address: Address) -> None:
        self.sock.sendto(data, address)

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self.sock.close()

    def __enter__(self) -> "UdpTransport":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
