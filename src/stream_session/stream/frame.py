"""
Frame Data Model
=================

Per-datagram frame representation for the session pipeline.

Design Rules:
    - Created once per received datagram and discarded after evaluation
    - Does NOT decode or manipulate image data
    - Delay may be negative when client and server clocks are skewed
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FrameEnvelope:
    """
    Frame as carried on the wire: server timestamp plus opaque payload.

    Attributes:
        server_timestamp_ms: Milliseconds since the epoch at the source
        payload: Encoded image bytes, passed untouched to the decoder
    """

    server_timestamp_ms: int
    payload: bytes

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the payload."""
        return (
            f"FrameEnvelope(server_timestamp_ms={self.server_timestamp_ms}, "
            f"payload={len(self.payload)} bytes)"
        )


@dataclass(frozen=True, slots=True)
class FreshnessSample:
    """
    Age of one frame at the moment it was received.

    Attributes:
        received_at_ms: Local receipt time in epoch milliseconds
        server_timestamp_ms: Timestamp carried by the envelope
    """

    received_at_ms: int
    server_timestamp_ms: int

    @property
    def delay_ms(self) -> int:
        return self.received_at_ms - self.server_timestamp_ms
