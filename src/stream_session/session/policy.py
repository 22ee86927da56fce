"""
Freshness & Latency Policy
==========================

Decides, per arriving frame, whether to render it, suppress it, or flag it.

Evaluation order:
    1. Envelope shorter than or equal to its header → MALFORMED_FRAME
       (delay undefined)
    2. delay = now - server_timestamp
    3. delay > cutoff and debug mode off → HIGH_LATENCY, no decode
    4. Decode payload: success → LIVE, failure → DECODE_ERROR

Freeze tracking:
    The policy remembers when the last frame was successfully decoded.
    The stream is frozen when that time is older than the freeze timeout.
    A decode failure does not refresh it unless the policy is built with
    decode_failure_refreshes_freeze=True. Suppressed and malformed frames
    never refresh it.

Design Rules:
    - Clock-agnostic: callers pass `now_ms`
    - Negative delays (clock skew) are accepted as fresh
    - The decoder is injected; it raises ImageDecodeError on failure
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from stream_session.errors import ImageDecodeError, MalformedFrameError
from stream_session.models.status import DisplayStatus
from stream_session.stream.envelope import decode_envelope
from stream_session.stream.frame import FreshnessSample
from stream_session.stream.image_decoder import ImageDecoder, decode_image


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FrameDisposition:
    """
    Outcome of evaluating one frame.

    Attributes:
        verdict: LIVE, HIGH_LATENCY, DECODE_ERROR or MALFORMED_FRAME
        received_at_ms: Local receipt time
        image: Decoded image when verdict is LIVE
        delay_ms: Frame age, None for malformed frames
        server_timestamp_ms: Envelope timestamp, None for malformed frames
        over_cutoff: Frame exceeded the cutoff but was rendered (debug mode)
    """

    verdict: DisplayStatus
    received_at_ms: int
    image: Optional[np.ndarray] = None
    delay_ms: Optional[int] = None
    server_timestamp_ms: Optional[int] = None
    over_cutoff: bool = False

    @property
    def accepted(self) -> bool:
        return self.verdict is DisplayStatus.LIVE


class FreshnessPolicy:
    """
    Per-frame latency cutoff and freeze tracking.

    Attributes:
        latency_cutoff_ms: Maximum tolerated frame age
        debug_mode: Render late frames instead of suppressing them
        decode_failure_refreshes_freeze: Count undecodable frames as alive
        format_hint: Image format passed to the decoder
        last_good_frame_ms: Receipt time of the last frame that refreshed
            the freeze timer, None if none since the last reset

    Example:
        policy = FreshnessPolicy(latency_cutoff_ms=150)
        disposition = policy.evaluate(message, now_ms)
        if policy.is_frozen(now_ms, freeze_timeout_ms=500):
            ...
    """

    def __init__(
        self,
        latency_cutoff_ms: int = 150,
        debug_mode: bool = False,
        decoder: ImageDecoder = decode_image,
        decode_failure_refreshes_freeze: bool = False,
        format_hint: str = "JPEG",
    ) -> None:
        if latency_cutoff_ms <= 0:
            raise ValueError("latency_cutoff_ms must be positive")

        self.latency_cutoff_ms = latency_cutoff_ms
        self.debug_mode = debug_mode
        self.decode_failure_refreshes_freeze = decode_failure_refreshes_freeze
        self.format_hint = format_hint
        self.last_good_frame_ms: Optional[int] = None

        self._decoder = decoder

    def evaluate(self, data: bytes, now_ms: int) -> FrameDisposition:
        """
        Evaluate one raw frame message.

        Args:
            data: Raw envelope bytes from either data plane
            now_ms: Local receipt time in epoch milliseconds

        Returns:
            FrameDisposition describing what to display
        """
        try:
            envelope = decode_envelope(data)
        except MalformedFrameError as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return FrameDisposition(
                verdict=DisplayStatus.MALFORMED_FRAME,
                received_at_ms=now_ms,
            )

        sample = FreshnessSample(
            received_at_ms=now_ms,
            server_timestamp_ms=envelope.server_timestamp_ms,
        )
        delay_ms = sample.delay_ms
        over_cutoff = delay_ms > self.latency_cutoff_ms

        logger.debug(
            f"Frame received: server_ts={sample.server_timestamp_ms}, "
            f"now={now_ms}, delay={delay_ms}ms"
        )

        if over_cutoff and not self.debug_mode:
            return FrameDisposition(
                verdict=DisplayStatus.HIGH_LATENCY,
                received_at_ms=now_ms,
                delay_ms=delay_ms,
                server_timestamp_ms=sample.server_timestamp_ms,
            )

        try:
            image = self._decoder(envelope.payload, self.format_hint)
        except ImageDecodeError as e:
            logger.warning(f"Frame decode failed: {e}")
            if self.decode_failure_refreshes_freeze:
                self.last_good_frame_ms = now_ms
            return FrameDisposition(
                verdict=DisplayStatus.DECODE_ERROR,
                received_at_ms=now_ms,
                delay_ms=delay_ms,
                server_timestamp_ms=sample.server_timestamp_ms,
                over_cutoff=over_cutoff,
            )

        self.last_good_frame_ms = now_ms
        return FrameDisposition(
            verdict=DisplayStatus.LIVE,
            received_at_ms=now_ms,
            image=image,
            delay_ms=delay_ms,
            server_timestamp_ms=sample.server_timestamp_ms,
            over_cutoff=over_cutoff,
        )

    def is_frozen(self, now_ms: int, freeze_timeout_ms: int) -> bool:
        """
        Whether no good frame arrived within the freeze timeout.

        Never true before the first good frame.
        """
        if self.last_good_frame_ms is None:
            return False
        return now_ms - self.last_good_frame_ms > freeze_timeout_ms

    def reset(self) -> None:
        """Forget the last good frame (on connect and disconnect)."""
        self.last_good_frame_ms = None
