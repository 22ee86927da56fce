"""
Session Output Models
=====================

Read-only values the session exposes to its consumer (a renderer, the
HTTP surface, a host plugin).

    - DisplayableOutput: either a decoded image or a status message
    - Diagnostics: fields for an optional debug overlay
    - AuxiliaryFeatureState: last announced undistortion availability/state
    - StreamLabel: optional name box drawn in a corner of the view

Design Rules:
    - Exactly one of image / status is active at a time
    - Values are immutable snapshots; the session replaces them
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np

from stream_session.models.status import DisplayStatus, SessionState


@dataclass(frozen=True, eq=False)
class DisplayableOutput:
    """
    What the consumer should currently display.

    Attributes:
        status: Display status; LIVE means `image` is set
        image: Decoded BGR image (H, W, 3), only while LIVE
        received_at_ms: Local receipt time of the frame behind `image`
    """

    status: DisplayStatus
    image: Optional[np.ndarray] = None
    received_at_ms: Optional[int] = None

    @classmethod
    def for_status(cls, status: DisplayStatus) -> "DisplayableOutput":
        return cls(status=status)

    @property
    def status_text(self) -> str:
        return self.status.text

    @property
    def has_image(self) -> bool:
        return self.image is not None

    def same_as(self, other: Optional["DisplayableOutput"]) -> bool:
        """Whether `other` would render identically (image compared by identity)."""
        return (
            other is not None
            and self.status is other.status
            and self.image is other.image
        )

    def __repr__(self) -> str:
        shape = None if self.image is None else self.image.shape
        return f"DisplayableOutput(status={self.status.value}, image={shape})"


@dataclass(frozen=True)
class AuxiliaryFeatureState:
    """Undistortion state as last announced by the server."""

    available: bool = False
    enabled: bool = False
    mode: int = 0


@dataclass(frozen=True)
class Diagnostics:
    """
    Debug overlay fields.

    Attributes:
        connection_state: Control channel state
        display_status: Current display status
        last_delay_ms: Delay of the last frame, None if undefined
        last_server_timestamp_ms: Envelope timestamp of the last frame
        last_receive_timestamp_ms: Local receipt time of the last frame
        last_good_frame_ms: Receipt time of the last decoded frame
        over_latency_cutoff: Last frame exceeded the cutoff in debug mode
        server_host: Host of the control endpoint
        stream_target: Upstream stream URI
    """

    connection_state: SessionState
    display_status: DisplayStatus
    last_delay_ms: Optional[int]
    last_server_timestamp_ms: Optional[int]
    last_receive_timestamp_ms: Optional[int]
    last_good_frame_ms: Optional[int]
    over_latency_cutoff: bool
    server_host: Optional[str]
    stream_target: Optional[str]

    def to_dict(self) -> dict:
        return {
            "connection_state": self.connection_state.value,
            "display_status": self.display_status.value,
            "last_delay_ms": self.last_delay_ms,
            "last_server_timestamp_ms": self.last_server_timestamp_ms,
            "last_receive_timestamp_ms": self.last_receive_timestamp_ms,
            "last_good_frame_ms": self.last_good_frame_ms,
            "over_latency_cutoff": self.over_latency_cutoff,
            "server_host": self.server_host,
            "stream_target": self.stream_target,
        }


class LabelCorner(IntEnum):
    """Corner in which the stream label is drawn."""

    TOP_LEFT = 1
    TOP_RIGHT = 2
    BOTTOM_RIGHT = 3
    BOTTOM_LEFT = 4

    @classmethod
    def from_position(cls, position: int) -> "LabelCorner":
        """Map a host position number, falling back to TOP_LEFT."""
        try:
            return cls(int(position))
        except (TypeError, ValueError):
            return cls.TOP_LEFT


@dataclass(frozen=True)
class StreamLabel:
    """Stream name box shown when debug mode is off."""

    name: str = ""
    corner: LabelCorner = LabelCorner.TOP_LEFT
