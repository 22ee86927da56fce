"""
Session Metrics
===============

Counters for session observability, exported by the HTTP surface.
"""


class SessionMetrics:
    """Metrics for StreamSession observability."""

    __slots__ = (
        "frames_received",
        "frames_rendered",
        "frames_suppressed",
        "decode_errors",
        "malformed_frames",
        "frames_dropped",
        "control_messages",
        "control_errors",
        "connect_attempts",
        "disconnects",
        "reconnects_scheduled",
        "stream_setups_sent",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.frames_rendered: int = 0
        self.frames_suppressed: int = 0
        self.decode_errors: int = 0
        self.malformed_frames: int = 0
        self.frames_dropped: int = 0
        self.control_messages: int = 0
        self.control_errors: int = 0
        self.connect_attempts: int = 0
        self.disconnects: int = 0
        self.reconnects_scheduled: int = 0
        self.stream_setups_sent: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}
