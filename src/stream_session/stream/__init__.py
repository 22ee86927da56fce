"""
Stream Module
=============

Frame wire format and payload decoding.

    - FrameEnvelope: timestamp + opaque payload
    - FreshnessSample: per-frame age measurement
    - decode_envelope / encode_envelope: binary envelope codec
    - decode_image: payload → BGR matrix (OpenCV)

Example:
    from stream_session.stream import decode_envelope, decode_image

    envelope = decode_envelope(message)
    image = decode_image(envelope.payload)
"""

from stream_session.stream.frame import FrameEnvelope, FreshnessSample
from stream_session.stream.envelope import (
    HEADER_SIZE,
    decode_envelope,
    encode_envelope,
)
from stream_session.stream.image_decoder import ImageDecoder, decode_image, encode_jpeg


__all__ = [
    "FrameEnvelope",
    "FreshnessSample",
    "HEADER_SIZE",
    "decode_envelope",
    "encode_envelope",
    "ImageDecoder",
    "decode_image",
    "encode_jpeg",
]
