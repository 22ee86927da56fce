"""
Image Decoder Tests
===================
"""

import numpy as np
import pytest

from stream_session.errors import ImageDecodeError
from stream_session.stream.image_decoder import decode_image, encode_jpeg


class TestDecodeImage:
    """Tests for payload decoding via OpenCV."""

    def test_valid_jpeg(self, jpeg_bytes):
        image = decode_image(jpeg_bytes)
        assert image.shape == (16, 24, 3)
        assert image.dtype == np.uint8

    def test_garbage_payload(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"definitely not an image")

    def test_empty_payload(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"")

    def test_truncated_jpeg_header(self, jpeg_bytes):
        with pytest.raises(ImageDecodeError):
            decode_image(jpeg_bytes[:10])


class TestEncodeJpeg:
    """Tests for re-encoding decoded frames."""

    def test_encodes_jpeg_magic(self, jpeg_bytes):
        data = encode_jpeg(decode_image(jpeg_bytes))
        assert data[:2] == b"\xff\xd8"
        assert decode_image(data).shape == (16, 24, 3)
