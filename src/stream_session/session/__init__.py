"""
Session Module
==============

Stream session core.

    - StreamSession: public facade (setters, reads, notifications)
    - SessionStateMachine: connection lifecycle and reconnection
    - FreshnessPolicy: per-frame latency cutoff and freeze tracking
    - SessionMetrics: observability counters
"""

from stream_session.session.facade import StreamSession
from stream_session.session.metrics import SessionMetrics
from stream_session.session.policy import FrameDisposition, FreshnessPolicy
from stream_session.session.state_machine import (
    LIVENESS_INTERVAL_MS,
    SessionStateMachine,
    wall_clock_ms,
)


__all__ = [
    "StreamSession",
    "SessionStateMachine",
    "FreshnessPolicy",
    "FrameDisposition",
    "SessionMetrics",
    "LIVENESS_INTERVAL_MS",
    "wall_clock_ms",
]
