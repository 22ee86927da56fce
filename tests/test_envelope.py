"""
Envelope Codec Tests
====================
"""

import struct

import pytest

from stream_session.errors import MalformedFrameError
from stream_session.stream.envelope import HEADER_SIZE, decode_envelope, encode_envelope


class TestDecodeEnvelope:
    """Tests for splitting binary messages into timestamp and payload."""

    @pytest.mark.parametrize("length", range(0, HEADER_SIZE + 1))
    def test_short_buffers_are_malformed(self, length):
        with pytest.raises(MalformedFrameError) as exc_info:
            decode_envelope(b"\x01" * length)
        assert exc_info.value.length == length

    def test_timestamp_is_big_endian_int64(self):
        data = bytes.fromhex("0000018b cfe56800".replace(" ", "")) + b"\xff\xd8jpeg"
        envelope = decode_envelope(data)
        assert envelope.server_timestamp_ms == 0x0000018BCFE56800
        assert envelope.payload == b"\xff\xd8jpeg"

    def test_negative_timestamp(self):
        data = struct.pack(">q", -5) + b"x"
        assert decode_envelope(data).server_timestamp_ms == -5

    def test_single_byte_payload(self):
        envelope = decode_envelope(b"\x00" * HEADER_SIZE + b"z")
        assert envelope.server_timestamp_ms == 0
        assert envelope.payload == b"z"

    def test_accepts_bytearray(self):
        data = bytearray(encode_envelope(42, b"payload"))
        envelope = decode_envelope(data)
        assert envelope.server_timestamp_ms == 42
        assert isinstance(envelope.payload, bytes)


class TestEncodeEnvelope:
    """Tests for building envelopes."""

    def test_header_prefix(self):
        data = encode_envelope(1_700_000_000_123, b"abc")
        assert len(data) == HEADER_SIZE + 3
        assert data[:HEADER_SIZE] == struct.pack(">q", 1_700_000_000_123)
        assert data[HEADER_SIZE:] == b"abc"

    def test_repr_hides_payload(self):
        envelope = decode_envelope(encode_envelope(7, b"x" * 1000))
        assert "1000 bytes" in repr(envelope)
