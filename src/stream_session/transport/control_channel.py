"""
WebSocket Control Channel
=========================

Reliable ordered channel carrying JSON control messages and, when the
ordered transport is selected, binary frame messages.

This module:
    - Connects to the control endpoint in a background task
    - Dispatches text messages and binary messages to the listener
    - Reports the closure (normal, error, or failed open) exactly once
    - Sends text messages fire-and-forget

Design Rules:
    - One instance per connection attempt; it is not reopened
    - Does NOT reconnect; reconnection policy belongs to the session
    - Does NOT parse messages
"""

import asyncio
import logging
from typing import Optional, Set

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    WebSocketException,
)

from stream_session.transport.base import ControlChannelListener


logger = logging.getLogger(__name__)


class WebSocketControlChannel:
    """
    WebSocket client for the control endpoint.

    Attributes:
        endpoint: WebSocket URI (ws:// or wss://)
        open_timeout: Seconds allowed for the opening handshake

    Example:
        channel = WebSocketControlChannel("ws://10.0.0.5:8765", listener)
        channel.open()
        ...
        channel.send_text('{"type": "control", ...}')
        channel.close()
    """

    def __init__(
        self,
        endpoint: str,
        listener: ControlChannelListener,
        open_timeout: float = 10.0,
    ) -> None:
        """
        Initialize control channel.

        Args:
            endpoint: WebSocket URI of the control server
            listener: Receives open/message/closed callbacks
            open_timeout: Handshake timeout in seconds
        """
        self.endpoint = endpoint
        self.open_timeout = open_timeout
        self._listener = listener

        self._websocket = None
        self._task: Optional[asyncio.Task] = None
        self._send_tasks: Set[asyncio.Task] = set()
        self._closing: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the handshake completed and the socket is usable."""
        return self._websocket is not None and not self._closing

    def open(self) -> None:
        """Start the connection task. Must be called on the event loop."""
        if self._task is not None or self._closing:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(),
            name=f"control_channel:{self.endpoint}",
        )

    def send_text(self, text: str) -> bool:
        """
        Queue a text message for sending.

        Returns:
            False if the channel is not open
        """
        if not self.is_open:
            return False
        task = asyncio.get_running_loop().create_task(self._send(text))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    def close(self) -> None:
        """Close locally. The listener is not notified."""
        if self._closing:
            return
        self._closing = True
        for task in list(self._send_tasks):
            task.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the connection task to finish after close()."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _send(self, text: str) -> None:
        ws = self._websocket
        if ws is None:
            return
        try:
            await ws.send(text)
        except ConnectionClosed as e:
            logger.warning(f"Control message not sent, channel closed: {e}")

    async def _run(self) -> None:
        """Connect, dispatch messages until closure, then report it."""
        reason: Optional[str] = None
        try:
            async with websockets.connect(
                self.endpoint,
                open_timeout=self.open_timeout,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
                max_size=None,
            ) as ws:
                self._websocket = ws
                logger.info(f"Control channel connected: {self.endpoint}")
                self._listener.on_channel_open(self)

                async for message in ws:
                    if self._closing:
                        break
                    if isinstance(message, (bytes, bytearray)):
                        self._listener.on_channel_binary(self, bytes(message))
                    else:
                        self._listener.on_channel_text(self, message)

                reason = "closed by server"

        except ConnectionClosedOK:
            reason = "closed normally"
            logger.info(f"Control channel closed normally: {self.endpoint}")
        except ConnectionClosed as e:
            reason = f"connection lost: {e}"
            logger.warning(f"Control channel lost: {e}")
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            reason = f"open failed: {e}"
            logger.warning(f"Control channel could not connect to {self.endpoint}: {e}")
        finally:
            self._websocket = None
            if not self._closing:
                self._listener.on_channel_closed(self, reason)
