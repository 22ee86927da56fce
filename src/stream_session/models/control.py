"""
Control Message Schema
======================

Pydantic models for the JSON messages exchanged on the control channel.

Client → Server:
    {"type": "control", "command": "set_stream", "url": "rtsp://cam1",
     "transport": "udp", "frame_drop_ratio": 2,
     "udp_port": 5600, "udp_ip": "192.168.1.20"}
    {"type": "control", "command": "toggle_undistortion"}

Server → Client:
    {"type": "undistortion_info", "available": true, "enabled": false, "mode": 0}
    {"type": "undistortion_state", "enabled": true, "mode": 1}

Optional fields are omitted from the wire rather than sent as null.
"""

import json
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from stream_session.errors import ControlMessageError
from stream_session.models.configuration import StreamConfiguration, TransportKind


class SetStreamCommand(BaseModel):
    """Stream-setup request telling the server what to send and where."""

    type: Literal["control"] = "control"
    command: Literal["set_stream"] = "set_stream"
    url: str
    transport: TransportKind
    frame_drop_ratio: Optional[int] = Field(default=None, gt=1)
    udp_port: Optional[int] = None
    udp_ip: Optional[str] = None

    @classmethod
    def from_configuration(
        cls,
        config: StreamConfiguration,
        local_ip: Optional[str] = None,
    ) -> "SetStreamCommand":
        """
        Build the stream-setup message for a configuration snapshot.

        Args:
            config: Current configuration
            local_ip: Reachable local IPv4 address (datagram transport only)

        Returns:
            SetStreamCommand with datagram fields only when using UDP
        """
        return cls(
            url=config.stream_target,
            transport=config.transport,
            frame_drop_ratio=(
                config.frame_drop_ratio if config.frame_drop_ratio > 1 else None
            ),
            udp_port=config.datagram_port if config.uses_datagram else None,
            udp_ip=local_ip if config.uses_datagram else None,
        )

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ToggleUndistortionCommand(BaseModel):
    """Fire-and-forget request to flip the server's undistortion filter."""

    type: Literal["control"] = "control"
    command: Literal["toggle_undistortion"] = "toggle_undistortion"

    def to_json(self) -> str:
        return self.model_dump_json()


class UndistortionInfo(BaseModel):
    """Full undistortion state snapshot, typically sent on connect."""

    type: Literal["undistortion_info"] = "undistortion_info"
    available: bool
    enabled: bool
    mode: int


class UndistortionState(BaseModel):
    """Incremental undistortion state update."""

    type: Literal["undistortion_state"] = "undistortion_state"
    enabled: bool
    mode: int


ServerNotification = Union[UndistortionInfo, UndistortionState]

_NOTIFICATION_TYPES = {
    "undistortion_info": UndistortionInfo,
    "undistortion_state": UndistortionState,
}


def parse_control_message(raw: str) -> Optional[ServerNotification]:
    """
    Parse a text message received on the control channel.

    Args:
        raw: JSON text

    Returns:
        Parsed notification, or None for a well-formed message of an
        unknown type

    Raises:
        ControlMessageError: If the text is not JSON or fails validation
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ControlMessageError(f"Control message is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ControlMessageError("Control message is not a JSON object")

    model = _NOTIFICATION_TYPES.get(data.get("type"))
    if model is None:
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ControlMessageError(
            f"Invalid {data['type']} message: {e.error_count()} error(s)"
        ) from e
