"""
Transport Tests
===============

Tests for the WebSocket control channel, both data planes, and local
address selection.
"""

import asyncio
import json
import socket
from types import SimpleNamespace

import pytest
import websockets

from stream_session.models.configuration import TransportKind
from stream_session.transport import local_address
from stream_session.transport.base import OrderedDataPlane
from stream_session.transport.control_channel import WebSocketControlChannel
from stream_session.transport.datagram import DatagramDataPlane
from stream_session.transport.local_address import select_local_ipv4

from conftest import free_udp_port


class RecordingListener:
    """Collects control channel callbacks."""

    def __init__(self) -> None:
        self.events = []
        self.closed = asyncio.Event()

    def on_channel_open(self, channel):
        self.events.append(("open",))

    def on_channel_binary(self, channel, data):
        self.events.append(("binary", data))

    def on_channel_text(self, channel, text):
        self.events.append(("text", text))

    def on_channel_closed(self, channel, reason):
        self.events.append(("closed", reason))
        self.closed.set()


# =============================================================================
# Control channel
# =============================================================================

class TestWebSocketControlChannel:
    """Against a local websockets server."""

    def test_dispatch_and_server_close(self):
        received = []

        async def handler(ws):
            received.append(await ws.recv())
            await ws.send(json.dumps({"type": "undistortion_info", "available": True,
                                      "enabled": False, "mode": 0}))
            await ws.send(b"\x00" * 8 + b"frame")

        async def scenario():
            async with websockets.serve(handler, "127.0.0.1", 0) as server:
                port = list(server.sockets)[0].getsockname()[1]
                listener = RecordingListener()
                channel = WebSocketControlChannel(f"ws://127.0.0.1:{port}", listener)
                assert not channel.is_open

                channel.open()
                for _ in range(100):
                    if channel.is_open:
                        break
                    await asyncio.sleep(0.01)
                assert channel.send_text('{"type": "control", "command": "set_stream"}')

                await asyncio.wait_for(listener.closed.wait(), timeout=5)
                return listener.events

        events = asyncio.run(scenario())
        assert received == ['{"type": "control", "command": "set_stream"}']
        assert events[0] == ("open",)
        assert events[1][0] == "text"
        assert json.loads(events[1][1])["type"] == "undistortion_info"
        assert events[2] == ("binary", b"\x00" * 8 + b"frame")
        assert events[3][0] == "closed"
        assert len(events) == 4

    def test_open_failure_reported(self):
        async def scenario():
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind(("127.0.0.1", 0))
                port = sock.getsockname()[1]
            listener = RecordingListener()
            channel = WebSocketControlChannel(f"ws://127.0.0.1:{port}", listener, open_timeout=2)
            channel.open()
            await asyncio.wait_for(listener.closed.wait(), timeout=5)
            return channel, listener.events

        channel, events = asyncio.run(scenario())
        assert events == [("closed", events[0][1])]
        assert events[0][1].startswith("open failed")
        assert not channel.is_open

    def test_local_close_is_silent(self):
        async def handler(ws):
            await ws.wait_closed()

        async def scenario():
            async with websockets.serve(handler, "127.0.0.1", 0) as server:
                port = list(server.sockets)[0].getsockname()[1]
                listener = RecordingListener()
                channel = WebSocketControlChannel(f"ws://127.0.0.1:{port}", listener)
                channel.open()
                for _ in range(100):
                    if channel.is_open:
                        break
                    await asyncio.sleep(0.01)
                channel.close()
                await channel.wait_closed()
                assert not channel.is_open
                assert not channel.send_text("{}")
                return listener.events

        assert asyncio.run(scenario()) == [("open",)]


# =============================================================================
# Data planes
# =============================================================================

class TestOrderedDataPlane:
    """Frames forwarded from the control channel."""

    def test_forwards_only_while_open(self):
        frames = []
        plane = OrderedDataPlane(sink=frames.append)
        assert plane.kind is TransportKind.ORDERED_CHANNEL
        assert not plane.deliver_channel_message(b"early")

        assert plane.open()
        assert plane.ready
        assert plane.deliver_channel_message(b"frame")

        plane.close()
        assert not plane.ready
        assert not plane.deliver_channel_message(b"late")
        assert frames == [b"frame"]


class TestDatagramDataPlane:
    """UDP receive path on loopback."""

    def test_receive_and_close(self):
        async def scenario():
            frames = []
            port = free_udp_port()
            plane = DatagramDataPlane(port, sink=frames.append, host="127.0.0.1")
            assert plane.open()
            assert plane.ready
            assert plane.bound_address == ("127.0.0.1", port)
            # Binary channel messages are not this plane's frames
            assert not plane.deliver_channel_message(b"x")

            await asyncio.sleep(0.05)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
                sender.sendto(b"datagram-1", ("127.0.0.1", port))
                for _ in range(50):
                    await asyncio.sleep(0.01)
                    if frames:
                        break

                plane.close()
                plane.close()
                sender.sendto(b"datagram-2", ("127.0.0.1", port))
                await asyncio.sleep(0.05)

            assert not plane.ready
            assert plane.bound_address is None
            return frames, plane.datagrams_received

        frames, count = asyncio.run(scenario())
        assert frames == [b"datagram-1"]
        assert count == 1

    def test_close_while_attaching(self):
        async def scenario():
            port = free_udp_port()
            plane = DatagramDataPlane(port, sink=lambda data: None)
            assert plane.open()
            plane.close()
            await asyncio.sleep(0.02)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.bind(("0.0.0.0", port))

        asyncio.run(scenario())

    def test_bind_failure(self):
        async def scenario():
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as blocker:
                blocker.bind(("0.0.0.0", 0))
                port = blocker.getsockname()[1]
                plane = DatagramDataPlane(port, sink=lambda data: None)
                assert plane.open() is False
                assert not plane.ready

        asyncio.run(scenario())

    def test_missing_port(self):
        async def scenario():
            plane = DatagramDataPlane(None, sink=lambda data: None)
            assert plane.open() is False
            assert not plane.ready

        asyncio.run(scenario())


# =============================================================================
# Local address
# =============================================================================

class TestSelectLocalIpv4:
    """Address preference order."""

    def test_prefers_private(self):
        assert select_local_ipv4(["127.0.0.1", "8.8.4.4", "192.168.1.20"]) == "192.168.1.20"
        assert select_local_ipv4(["172.20.0.3"]) == "172.20.0.3"
        assert select_local_ipv4(["10.1.2.3", "192.168.1.20"]) == "10.1.2.3"

    def test_falls_back_to_public(self):
        assert select_local_ipv4(["127.0.0.1", "8.8.4.4"]) == "8.8.4.4"

    def test_skips_outside_private_ranges(self):
        # 172.32/16 is not in 172.16/12
        assert select_local_ipv4(["172.32.0.1", "10.0.0.9"]) == "10.0.0.9"

    @pytest.mark.parametrize("candidates", [[], ["127.0.0.1"], ["0.0.0.0", "garbage"]])
    def test_unavailable(self, candidates):
        assert select_local_ipv4(candidates) is None


class TestResolveLocalIpv4:
    """Interface enumeration via psutil."""

    def test_skips_down_interfaces(self, monkeypatch):
        def addr(ip):
            return SimpleNamespace(family=socket.AF_INET, address=ip)

        monkeypatch.setattr(local_address.psutil, "net_if_addrs", lambda: {
            "lo": [addr("127.0.0.1")],
            "eth0": [addr("10.0.0.7")],
            "eth1": [addr("192.168.1.20"), SimpleNamespace(family=socket.AF_INET6, address="fe80::1")],
        })
        monkeypatch.setattr(local_address.psutil, "net_if_stats", lambda: {
            "lo": SimpleNamespace(isup=True),
            "eth0": SimpleNamespace(isup=False),
            "eth1": SimpleNamespace(isup=True),
        })
        assert local_address.resolve_local_ipv4() == "192.168.1.20"

    def test_enumeration_failure(self, monkeypatch):
        def boom():
            raise OSError("no interfaces")

        monkeypatch.setattr(local_address.psutil, "net_if_addrs", boom)
        monkeypatch.setattr(local_address.psutil, "net_if_stats", dict)
        assert local_address.resolve_local_ipv4() is None
