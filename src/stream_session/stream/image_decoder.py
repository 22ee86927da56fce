"""
Image Decoder
=============

Decodes frame payloads into OpenCV matrices.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Validates shape and dtype
    - Fails fast on corrupt payloads with ImageDecodeError
    - Returns BGR, the layout renderers expect from OpenCV
"""

import logging
from typing import Callable

import cv2
import numpy as np

from stream_session.errors import ImageDecodeError


logger = logging.getLogger(__name__)

# Signature of the decode collaborator used by the freshness policy
ImageDecoder = Callable[[bytes, str], np.ndarray]


def decode_image(payload: bytes, format_hint: str = "JPEG") -> np.ndarray:
    """
    Decode an encoded image payload to a BGR numpy array.

    OpenCV detects the container from the payload itself; the format hint
    only labels error messages.

    Args:
        payload: Encoded image bytes (JPEG from the upstream source)
        format_hint: Expected image format

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if not payload:
        raise ImageDecodeError(f"Empty {format_hint} payload")

    try:
        nparr = np.frombuffer(payload, np.uint8)
        bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise ImageDecodeError(f"OpenCV failed to decode {format_hint} payload: {e}") from e

    if bgr is None:
        raise ImageDecodeError(
            f"Failed to decode {format_hint} payload of {len(payload)} bytes"
        )

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(f"Invalid dtype: {bgr.dtype}")

    return bgr


def encode_jpeg(image: np.ndarray, quality: int = 85) -> bytes:
    """
    Re-encode a decoded image as JPEG.

    Raises:
        ImageDecodeError: If OpenCV cannot encode the image
    """
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ImageDecodeError(f"Failed to encode image of shape {image.shape}")
    return buf.tobytes()
