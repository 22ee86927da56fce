"""
Error Types
===========

Exception hierarchy for the stream session client.

Taxonomy:
    - ConfigurationError: rejected synchronously at a setter boundary,
      prior configuration is retained
    - MalformedFrameError: envelope shorter than or equal to its header
    - ImageDecodeError: payload is not a decodable image
    - ControlMessageError: control JSON that cannot be parsed

Only ConfigurationError ever reaches a caller. The other errors are
caught inside the session, logged, and surfaced as display status.
"""


class StreamSessionError(Exception):
    """Base class for all stream session errors."""
    pass


class ConfigurationError(StreamSessionError, ValueError):
    """Raised when a configuration value is invalid."""
    pass


class MalformedFrameError(StreamSessionError):
    """Raised when a binary frame does not carry a full envelope."""

    def __init__(self, length: int) -> None:
        super().__init__(f"Frame of {length} bytes is too short for an envelope")
        self.length = length


class ImageDecodeError(StreamSessionError):
    """Raised when image decoding fails."""
    pass


class ControlMessageError(StreamSessionError):
    """Raised when a control message cannot be parsed."""
    pass
