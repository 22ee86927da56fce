"""
Display Status Tests
====================
"""

import pytest

from stream_session.models.output import DisplayableOutput, LabelCorner
from stream_session.models.status import (
    POLICY_VERDICTS,
    DisplayStatus,
    SessionState,
    derive_display_status,
)


class TestDeriveDisplayStatus:
    """Priority order of the derived status."""

    @pytest.mark.parametrize("state", [SessionState.DISCONNECTED, SessionState.CONNECTING])
    def test_not_connected(self, state):
        status = derive_display_status(state, True, True, DisplayStatus.LIVE)
        assert status is DisplayStatus.NO_CONNECTION

    def test_data_plane_unavailable(self):
        status = derive_display_status(SessionState.CONNECTED, False, False, DisplayStatus.LIVE)
        assert status is DisplayStatus.NO_CONNECTION

    def test_frozen_overrides_verdict(self):
        status = derive_display_status(SessionState.CONNECTED, True, True, DisplayStatus.LIVE)
        assert status is DisplayStatus.FROZEN

    def test_connecting_until_first_frame(self):
        status = derive_display_status(SessionState.CONNECTED, True, False, None)
        assert status is DisplayStatus.CONNECTING

    @pytest.mark.parametrize("verdict", sorted(POLICY_VERDICTS, key=lambda s: s.value))
    def test_verdict_passes_through(self, verdict):
        assert derive_display_status(SessionState.CONNECTED, True, False, verdict) is verdict


class TestStatusText:
    """Human-readable status lines."""

    def test_texts(self):
        assert DisplayStatus.NO_CONNECTION.text == "No connection to stream"
        assert DisplayStatus.CONNECTING.text == "Connecting to stream..."
        assert DisplayStatus.HIGH_LATENCY.text == "Considerable latency in stream"
        assert DisplayStatus.DECODE_ERROR.text == "Error decoding image"
        assert DisplayStatus.MALFORMED_FRAME.text == "Invalid message format"
        assert DisplayStatus.FROZEN.text == "Stream appears to be frozen"
        assert DisplayStatus.LIVE.text == ""

    def test_output_status_text(self):
        output = DisplayableOutput.for_status(DisplayStatus.FROZEN)
        assert output.status_text == "Stream appears to be frozen"
        assert output.has_image is False


class TestLabelCorner:
    @pytest.mark.parametrize(
        "position,corner",
        [
            (1, LabelCorner.TOP_LEFT),
            (2, LabelCorner.TOP_RIGHT),
            (3, LabelCorner.BOTTOM_RIGHT),
            (4, LabelCorner.BOTTOM_LEFT),
            (0, LabelCorner.TOP_LEFT),
            (9, LabelCorner.TOP_LEFT),
            ("x", LabelCorner.TOP_LEFT),
        ],
    )
    def test_from_position(self, position, corner):
        assert LabelCorner.from_position(position) is corner
