"""
Data Models
===========

Models for the stream session client.

Models:
    Configuration:
        - TransportKind: Data-plane transport (websocket / udp)
        - StreamConfiguration: Immutable connection snapshot

    Status:
        - SessionState: DISCONNECTED / CONNECTING / CONNECTED
        - DisplayStatus: Derived displayable status

    Control:
        - SetStreamCommand, ToggleUndistortionCommand: client requests
        - UndistortionInfo, UndistortionState: server notifications

    Output:
        - DisplayableOutput: image-or-status for the consumer
        - Diagnostics: debug overlay fields
        - AuxiliaryFeatureState: announced undistortion state
        - StreamLabel, LabelCorner: stream name box
"""

from stream_session.models.configuration import StreamConfiguration, TransportKind
from stream_session.models.status import (
    DisplayStatus,
    SessionState,
    derive_display_status,
)
from stream_session.models.control import (
    SetStreamCommand,
    ToggleUndistortionCommand,
    UndistortionInfo,
    UndistortionState,
    parse_control_message,
)
from stream_session.models.output import (
    AuxiliaryFeatureState,
    Diagnostics,
    DisplayableOutput,
    LabelCorner,
    StreamLabel,
)

__all__ = [
    # Configuration
    "TransportKind",
    "StreamConfiguration",
    # Status
    "SessionState",
    "DisplayStatus",
    "derive_display_status",
    # Control
    "SetStreamCommand",
    "ToggleUndistortionCommand",
    "UndistortionInfo",
    "UndistortionState",
    "parse_control_message",
    # Output
    "DisplayableOutput",
    "Diagnostics",
    "AuxiliaryFeatureState",
    "StreamLabel",
    "LabelCorner",
]
