"""
Datagram Data Plane
===================

Unordered, unreliable frame transport: each UDP datagram on the bound
local port carries one frame envelope.

Binding happens synchronously on a non-blocking socket so a failure
(port in use, permission denied) is known immediately; attaching the
socket to the event loop is then scheduled as a task.

Design Rules:
    - Bind failure is non-fatal: open() returns False and the session
      keeps its control channel
    - close() is idempotent and safe while the endpoint is still attaching
    - No datagram is delivered after close()
"""

import asyncio
import logging
import socket
from typing import Callable, Optional, Tuple

from stream_session.models.configuration import TransportKind
from stream_session.transport.base import DataPlane, FrameSink


logger = logging.getLogger(__name__)

# Enough room for a burst of full-size JPEG datagrams
_RECEIVE_BUFFER_BYTES = 1 << 22


class _FrameDatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, on_datagram: Callable[[bytes, Tuple[str, int]], None]) -> None:
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._on_datagram = on_datagram

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._on_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"UDP receive error: {exc!r}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.warning(f"UDP endpoint lost: {exc!r}")


class DatagramDataPlane(DataPlane):
    """
    UDP receiver bound to a local port.

    Attributes:
        port: Local UDP port to bind
        host: Local interface address to bind ('0.0.0.0' = all)
        datagrams_received: Count of datagrams delivered to the sink

    Example:
        plane = DatagramDataPlane(5600, sink=session.handle_frame_bytes)
        if not plane.open():
            ...  # surfaced as NO_CONNECTION
        plane.close()
    """

    kind = TransportKind.DATAGRAM

    def __init__(
        self,
        port: Optional[int],
        sink: FrameSink,
        host: str = "0.0.0.0",
    ) -> None:
        super().__init__(sink)
        self.port = port
        self.host = host
        self.datagrams_received: int = 0

        self._sock: Optional[socket.socket] = None
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._attach_task: Optional[asyncio.Task] = None

    @property
    def ready(self) -> bool:
        return self._sock is not None

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        if self._sock is None:
            return None
        return self._sock.getsockname()

    def open(self) -> bool:
        """
        Bind the port and start receiving. Rebinds if already open.

        Returns:
            False if the port is unset or the bind failed
        """
        self.close()

        if not self.port:
            logger.warning("Datagram transport selected but no UDP port configured")
            return False

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, _RECEIVE_BUFFER_BYTES)
            except OSError:
                pass
            sock.setblocking(False)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            logger.warning(f"Failed to bind UDP socket on port {self.port}: {e}")
            return False

        self._sock = sock
        self._attach_task = asyncio.get_running_loop().create_task(
            self._attach(sock),
            name=f"udp_attach:{self.port}",
        )
        logger.info(f"UDP socket bound on {self.host}:{self.port}")
        return True

    def close(self) -> None:
        """Unbind and drop any pending attach."""
        if self._attach_task is not None and not self._attach_task.done():
            self._attach_task.cancel()
        self._attach_task = None

        if self._transport is not None:
            self._transport.close()
            logger.info(f"UDP socket closed on port {self.port}")
        elif self._sock is not None:
            self._sock.close()
            logger.info(f"UDP socket closed on port {self.port}")

        self._transport = None
        self._sock = None

    async def _attach(self, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _FrameDatagramProtocol(self._on_datagram),
                sock=sock,
            )
        except OSError as e:
            logger.warning(f"Failed to attach UDP socket on port {self.port}: {e}")
            if self._sock is sock:
                sock.close()
                self._sock = None
            return

        if self._sock is not sock:
            # closed or rebound while attaching
            transport.close()
            return
        self._transport = transport

    def _on_datagram(self, data: bytes, addr: Tuple[str, int]) -> None:
        if self._sock is None:
            return
        self.datagrams_received += 1
        logger.debug(f"UDP datagram from {addr[0]}:{addr[1]}, size={len(data)}")
        self._sink(data)
