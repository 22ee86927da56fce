"""
HTTP Service Tests
==================

Endpoint tests through FastAPI's TestClient. The session is built with a
fake control channel factory so no network is touched.
"""

import pytest
from fastapi.testclient import TestClient

from stream_session import main
from stream_session.models.configuration import StreamConfiguration
from stream_session.session import StreamSession, wall_clock_ms
from stream_session.stream.envelope import encode_envelope
from stream_session.stream.image_decoder import decode_image


@pytest.fixture
def session(channel_factory, monkeypatch):
    session = StreamSession(
        config=StreamConfiguration(
            control_endpoint="ws://10.0.0.5:8765",
            stream_target="rtsp://cam1",
        ),
        channel_factory=channel_factory,
        local_address_resolver=lambda: "192.168.1.20",
        liveness_interval_ms=3_600_000,
    )
    monkeypatch.setattr(main, "create_session", lambda: session)
    return session


@pytest.fixture
def client(session):
    with TestClient(main.app) as client:
        yield client


class TestServiceEndpoints:
    """Info and probes."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "StreamSessionClient"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_while_connecting(self, client):
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["connection_state"] == "CONNECTING"

    def test_ready_when_connected(self, client, channel_factory):
        channel_factory.last.accept()
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["display_status"] == "CONNECTING"


class TestStatusEndpoints:
    """Displayable state over HTTP."""

    def test_status_without_frame(self, client):
        body = client.get("/status").json()
        assert body["display_status"] == "NO_CONNECTION"
        assert body["status_text"] == "No connection to stream"
        assert body["has_image"] is False
        assert body["diagnostics"]["server_host"] == "10.0.0.5"
        assert body["undistortion"] == {"available": False, "enabled": False, "mode": 0}
        assert body["stream_label"] == {"name": "", "corner": "TOP_LEFT"}

    def test_frame_404_while_status_shown(self, client):
        response = client.get("/frame")
        assert response.status_code == 404
        assert response.json()["status_text"] == "No connection to stream"

    def test_frame_served_when_live(self, client, channel_factory, jpeg_bytes):
        channel = channel_factory.last
        channel.accept()
        channel.push_binary(encode_envelope(wall_clock_ms(), jpeg_bytes))

        response = client.get("/frame")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert int(response.headers["x-frame-received-at-ms"]) > 0
        assert decode_image(response.content).shape == (16, 24, 3)

        body = client.get("/status").json()
        assert body["display_status"] == "LIVE"
        assert body["has_image"] is True

    def test_metrics(self, client, channel_factory):
        channel_factory.last.accept()
        channel_factory.last.push_binary(b"short")
        body = client.get("/metrics").json()
        assert body["malformed_frames"] == 1
        assert body["stream_setups_sent"] == 1
        assert body["display_status"] == "MALFORMED_FRAME"

    def test_status_websocket(self, client):
        with client.websocket_connect("/ws/status") as websocket:
            body = websocket.receive_json()
        assert body["connection_state"] == "CONNECTING"


class TestAuxiliaryToggle:
    """POST /auxiliary/toggle."""

    def test_conflict_when_unavailable(self, client):
        response = client.post("/auxiliary/toggle")
        assert response.status_code == 409
        assert response.json() == {"sent": False, "undistortion_available": False}

    def test_accepted_when_available(self, client, channel_factory):
        channel = channel_factory.last
        channel.accept()
        channel.push_text({"type": "undistortion_info", "available": True, "enabled": False, "mode": 0})

        response = client.post("/auxiliary/toggle")
        assert response.status_code == 202
        assert channel.sent[-1] == {"type": "control", "command": "toggle_undistortion"}


class TestNotRunning:
    def test_503_without_session(self):
        client = TestClient(main.app)
        assert client.get("/status").status_code == 503
        assert client.get("/frame").status_code == 503
