"""
Frame Envelope Codec
====================

Parses and builds the binary frame wire format:

    [8 bytes: signed int64 millisecond timestamp, big-endian][N bytes: payload]

Byte order is a fixed protocol constant shared with the upstream encoder
(network order, as written by a default QDataStream). A message of 8 bytes
or fewer carries no payload and is malformed.

Design Rules:
    - Pure and stateless
    - No payload validation; that is the image decoder's concern
"""

import struct

from stream_session.errors import MalformedFrameError
from stream_session.stream.frame import FrameEnvelope


HEADER = struct.Struct(">q")
HEADER_SIZE = HEADER.size


def decode_envelope(data: bytes) -> FrameEnvelope:
    """
    Split a binary message into timestamp and payload.

    Args:
        data: Raw message or datagram

    Returns:
        FrameEnvelope with the header timestamp and remaining bytes

    Raises:
        MalformedFrameError: If len(data) <= HEADER_SIZE
    """
    if len(data) <= HEADER_SIZE:
        raise MalformedFrameError(len(data))
    (timestamp,) = HEADER.unpack_from(data)
    return FrameEnvelope(
        server_timestamp_ms=timestamp,
        payload=bytes(data[HEADER_SIZE:]),
    )


def encode_envelope(server_timestamp_ms: int, payload: bytes) -> bytes:
    """Prefix a payload with its timestamp header."""
    return HEADER.pack(server_timestamp_ms) + bytes(payload)
