"""
Stream Configuration
====================

Immutable configuration snapshot for one stream session.

The snapshot is handed to the session at (re)connect time. Setters on the
session never mutate it in place: they build a new, validated snapshot with
`with_changes()` and swap it in. Invalid values raise ConfigurationError and
leave the previous snapshot untouched.

Example:
    from stream_session.models.configuration import StreamConfiguration

    config = StreamConfiguration(control_endpoint="ws://10.0.0.5:8765")
    config = config.with_changes(transport="udp", datagram_port=5600)
"""

from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stream_session.errors import ConfigurationError


class TransportKind(str, Enum):
    """
    Data-plane transport carrying frame bytes.

    The values are the strings used on the wire in `set_stream`.

    Attributes:
        ORDERED_CHANNEL: Frames arrive as binary WebSocket messages
        DATAGRAM: Frames arrive as UDP datagrams on a local port
    """

    ORDERED_CHANNEL = "websocket"
    DATAGRAM = "udp"

    @classmethod
    def parse(cls, value: Union["TransportKind", str]) -> "TransportKind":
        """
        Parse a transport kind from an enum member or a host string.

        Args:
            value: TransportKind or one of 'udp' / 'websocket' (any case)

        Returns:
            Matching TransportKind

        Raises:
            ConfigurationError: If the string names no known transport
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for kind in cls:
            if kind.value == text:
                return kind
        raise ConfigurationError(
            f"Invalid transport protocol: '{text}'. Use 'udp' or 'websocket'."
        )


class StreamConfiguration(BaseModel):
    """
    Snapshot of everything the session needs to connect and stream.

    Attributes:
        control_endpoint: WebSocket URI of the control channel ('' = unset)
        stream_target: URI/identifier of the upstream source ('' = unset)
        transport: Data-plane transport kind
        datagram_port: Local UDP port, required when transport is DATAGRAM
        frame_drop_ratio: Advisory frame thinning hint sent to the server
        latency_cutoff_ms: Frames older than this are suppressed
        freeze_timeout_ms: No accepted frame for this long marks a freeze
        reconnect_delay_ms: Delay before the single-shot reconnect attempt
    """

    model_config = ConfigDict(frozen=True)

    control_endpoint: str = Field(default="", description="Control channel URI")
    stream_target: str = Field(default="", description="Upstream stream URI")
    transport: TransportKind = Field(
        default=TransportKind.ORDERED_CHANNEL,
        description="Data-plane transport kind",
    )
    datagram_port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Local UDP port for the datagram data plane",
    )
    frame_drop_ratio: int = Field(default=1, ge=1, description="Frame thinning hint")
    latency_cutoff_ms: int = Field(default=150, gt=0, description="Latency cutoff")
    freeze_timeout_ms: int = Field(default=500, gt=0, description="Freeze timeout")
    reconnect_delay_ms: int = Field(default=5000, gt=0, description="Reconnect delay")

    @field_validator("transport", mode="before")
    @classmethod
    def _parse_transport(cls, value: Any) -> TransportKind:
        return TransportKind.parse(value)

    @field_validator("control_endpoint", "stream_target", mode="before")
    @classmethod
    def _strip_uri(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    def with_changes(self, **updates: Any) -> "StreamConfiguration":
        """
        Build a new validated snapshot with some fields replaced.

        Raises:
            ConfigurationError: If any updated value fails validation
        """
        data = self.model_dump()
        data.update(updates)
        try:
            return StreamConfiguration.model_validate(data)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid stream configuration: {errors}") from e

    @property
    def uses_datagram(self) -> bool:
        return self.transport is TransportKind.DATAGRAM

    @property
    def control_host(self) -> Optional[str]:
        """Host part of the control endpoint, if it parses."""
        if not self.control_endpoint:
            return None
        return urlparse(self.control_endpoint).hostname or None
