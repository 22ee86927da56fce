"""
Test Configuration
==================

Pytest fixtures and fakes for the stream session tests.

The fake control channel lets a test play the server side: accept the
connection, push text/binary messages, and drop the channel, all on the
test's event loop without any network.
"""

import json
import socket
from typing import List, Optional, Union

import cv2
import numpy as np
import pytest

from stream_session.errors import ImageDecodeError
from stream_session.stream.envelope import encode_envelope


class FakeControlChannel:
    """In-memory control channel driven by the test."""

    def __init__(self, endpoint, listener) -> None:
        self.endpoint = endpoint
        self.listener = listener
        self.sent: List[dict] = []
        self.opened = False
        self.closed = False
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open and not self.closed

    def open(self) -> None:
        self.opened = True

    def send_text(self, text: str) -> bool:
        if not self.is_open:
            return False
        self.sent.append(json.loads(text))
        return True

    def close(self) -> None:
        self.closed = True
        self._open = False

    # Server-side actions

    def accept(self) -> None:
        self._open = True
        self.listener.on_channel_open(self)

    def push_binary(self, data: bytes) -> None:
        self.listener.on_channel_binary(self, data)

    def push_text(self, message: Union[dict, str]) -> None:
        text = message if isinstance(message, str) else json.dumps(message)
        self.listener.on_channel_text(self, text)

    def drop(self, reason: str = "connection lost") -> None:
        self._open = False
        self.listener.on_channel_closed(self, reason)


class FakeChannelFactory:
    """Records every channel the session creates."""

    def __init__(self) -> None:
        self.channels: List[FakeControlChannel] = []

    def __call__(self, endpoint, listener) -> FakeControlChannel:
        channel = FakeControlChannel(endpoint, listener)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> Optional[FakeControlChannel]:
        return self.channels[-1] if self.channels else None


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def stub_decoder(payload: bytes, format_hint: str = "JPEG") -> np.ndarray:
    """Decoder stand-in: b'bad' fails, anything else is a 2x2 black image."""
    if payload.startswith(b"bad"):
        raise ImageDecodeError("stub decode failure")
    return np.zeros((2, 2, 3), dtype=np.uint8)


def free_udp_port() -> int:
    """A UDP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small valid JPEG."""
    image = np.full((16, 24, 3), 127, dtype=np.uint8)
    ok, buf = cv2.imencode(".jpg", image)
    assert ok
    return buf.tobytes()


@pytest.fixture
def make_frame(clock):
    """Build an envelope whose timestamp is `age_ms` before the fake clock."""

    def _make(age_ms: int = 0, payload: bytes = b"jpeg-payload") -> bytes:
        return encode_envelope(clock.now_ms - age_ms, payload)

    return _make
