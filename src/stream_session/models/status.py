"""
Session Status Models
=====================

Connection state and the derived display status.

Core Concepts:
    - SessionState: lifecycle of the control channel
      (DISCONNECTED → CONNECTING → CONNECTED)
    - DisplayStatus: what the consumer should show, derived from the
      session state, the freeze condition and the latest policy verdict

Derivation (priority order):
    NO_CONNECTION   if not CONNECTED, or the data plane could not be opened
    FROZEN          if the freeze condition holds
    <verdict>       the latest freshness policy verdict
    CONNECTING      if connected but no frame has been evaluated yet
"""

from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """
    Lifecycle state of the control channel.

    Attributes:
        DISCONNECTED: No channel, or the channel was lost
        CONNECTING: An open attempt is in flight
        CONNECTED: Control channel is open and stream-setup was sent
    """

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


class DisplayStatus(str, Enum):
    """
    Displayable status of the session.

    LIVE is the only status under which an image is shown.
    """

    NO_CONNECTION = "NO_CONNECTION"
    CONNECTING = "CONNECTING"
    LIVE = "LIVE"
    HIGH_LATENCY = "HIGH_LATENCY"
    DECODE_ERROR = "DECODE_ERROR"
    MALFORMED_FRAME = "MALFORMED_FRAME"
    FROZEN = "FROZEN"

    @property
    def text(self) -> str:
        """Human-readable status line ('' while live)."""
        return STATUS_TEXT[self]


STATUS_TEXT = {
    DisplayStatus.NO_CONNECTION: "No connection to stream",
    DisplayStatus.CONNECTING: "Connecting to stream...",
    DisplayStatus.LIVE: "",
    DisplayStatus.HIGH_LATENCY: "Considerable latency in stream",
    DisplayStatus.DECODE_ERROR: "Error decoding image",
    DisplayStatus.MALFORMED_FRAME: "Invalid message format",
    DisplayStatus.FROZEN: "Stream appears to be frozen",
}

# Verdicts the freshness policy may produce for a single frame
POLICY_VERDICTS = frozenset({
    DisplayStatus.LIVE,
    DisplayStatus.HIGH_LATENCY,
    DisplayStatus.DECODE_ERROR,
    DisplayStatus.MALFORMED_FRAME,
})


def derive_display_status(
    state: SessionState,
    data_plane_ready: bool,
    frozen: bool,
    verdict: Optional[DisplayStatus],
) -> DisplayStatus:
    """
    Compute the display status from the session's observable conditions.

    Args:
        state: Current control-channel state
        data_plane_ready: Whether the frame transport is open
        frozen: Whether the freeze condition currently holds
        verdict: Latest freshness policy verdict, None before the first frame

    Returns:
        The DisplayStatus to expose
    """
    if state is not SessionState.CONNECTED or not data_plane_ready:
        return DisplayStatus.NO_CONNECTION
    if frozen:
        return DisplayStatus.FROZEN
    if verdict is None:
        return DisplayStatus.CONNECTING
    return verdict
