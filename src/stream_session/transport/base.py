"""
Transport Contracts
===================

Interfaces shared by the control channel and the two data-plane variants.

    - ControlChannel: reliable ordered message channel (always WebSocket)
    - ControlChannelListener: callbacks the session implements
    - DataPlane: the channel that actually carries frame bytes
        - OrderedDataPlane: frames ride the control channel as binary messages
        - DatagramDataPlane: frames arrive as UDP datagrams on a local port

Design Rules:
    - Nothing here blocks: opening, sending and binding are fire-and-forget
      and report back through callbacks
    - A channel reports each closure exactly once, and never after a local
      close()
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol

from stream_session.models.configuration import TransportKind


# Receives the raw bytes of one frame message or datagram
FrameSink = Callable[[bytes], None]


class ControlChannelListener(Protocol):
    """Callbacks delivered by a control channel, on the event loop."""

    def on_channel_open(self, channel: "ControlChannel") -> None:
        ...

    def on_channel_binary(self, channel: "ControlChannel", data: bytes) -> None:
        ...

    def on_channel_text(self, channel: "ControlChannel", text: str) -> None:
        ...

    def on_channel_closed(self, channel: "ControlChannel", reason: Optional[str]) -> None:
        ...


class ControlChannel(Protocol):
    """
    Reliable, ordered, bidirectional message channel.

    Implemented by WebSocketControlChannel; tests substitute a fake.
    """

    endpoint: str

    @property
    def is_open(self) -> bool:
        ...

    def open(self) -> None:
        """Start connecting; the result arrives via the listener."""
        ...

    def send_text(self, text: str) -> bool:
        """Queue a text message. Returns False if the channel is not open."""
        ...

    def close(self) -> None:
        """Close locally. No listener callback follows."""
        ...


ControlChannelFactory = Callable[[str, ControlChannelListener], ControlChannel]


class DataPlane(ABC):
    """
    Frame-carrying transport held by the session behind one interface.

    The session swaps the instance when the transport kind changes.
    """

    kind: TransportKind

    def __init__(self, sink: FrameSink) -> None:
        self._sink = sink

    @property
    @abstractmethod
    def ready(self) -> bool:
        """Whether frames can currently be received."""

    @abstractmethod
    def open(self) -> bool:
        """
        Start receiving frames.

        Returns:
            False if the transport could not be opened (non-fatal)
        """

    @abstractmethod
    def close(self) -> None:
        """Stop receiving frames and release resources."""

    def deliver_channel_message(self, data: bytes) -> bool:
        """
        Offer a binary message that arrived on the control channel.

        Returns:
            True if this data plane accepted it as a frame
        """
        return False


class OrderedDataPlane(DataPlane):
    """
    Data plane for frames sent as binary messages on the control channel.

    Owns no socket of its own; opening it only starts accepting the
    binary messages the session forwards from the channel.
    """

    kind = TransportKind.ORDERED_CHANNEL

    def __init__(self, sink: FrameSink) -> None:
        super().__init__(sink)
        self._open = False

    @property
    def ready(self) -> bool:
        return self._open

    def open(self) -> bool:
        self._open = True
        return True

    def close(self) -> None:
        self._open = False

    def deliver_channel_message(self, data: bytes) -> bool:
        if not self._open:
            return False
        self._sink(data)
        return True
