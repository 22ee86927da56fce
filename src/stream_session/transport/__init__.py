"""
Transport Module
================

Control channel and data-plane transports.

    - WebSocketControlChannel: reliable ordered control channel
    - OrderedDataPlane: frames carried on the control channel
    - DatagramDataPlane: frames carried as UDP datagrams
    - resolve_local_ipv4: address advertised for datagram delivery
"""

from stream_session.transport.base import (
    ControlChannel,
    ControlChannelFactory,
    ControlChannelListener,
    DataPlane,
    FrameSink,
    OrderedDataPlane,
)
from stream_session.transport.control_channel import WebSocketControlChannel
from stream_session.transport.datagram import DatagramDataPlane
from stream_session.transport.local_address import resolve_local_ipv4, select_local_ipv4


__all__ = [
    "ControlChannel",
    "ControlChannelFactory",
    "ControlChannelListener",
    "DataPlane",
    "FrameSink",
    "OrderedDataPlane",
    "DatagramDataPlane",
    "WebSocketControlChannel",
    "resolve_local_ipv4",
    "select_local_ipv4",
]
