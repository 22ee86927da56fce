"""
Host Method Dispatcher
======================

Maps the string-named, loosely typed method calls of a host configuration
layer (management console, plugin shell) 1:1 onto StreamSession setters.

Methods:
    void setWebSocketUrl(string url)
    void setRtspStreamUrl(string url)
    void setDebugMode(bool enabled)
    void setDebugPrint(bool enabled)
    void setTransport(string transport)
    void setUdpPort(int port)
    void setFrameDropRatio(int ratio)
    void setStreamName(string name, int position=1)
    void setInGedi(bool inGedi)
    bool toggleUndistortion()

Design Rules:
    - Argument count and type are checked before any setter runs
    - Errors raise ConfigurationError; configuration stays unchanged
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from stream_session.errors import ConfigurationError
from stream_session.session.facade import StreamSession


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostMethod:
    """Signature of one host-callable method."""

    name: str
    arg_types: Tuple[type, ...]
    required_args: int
    signature: str


_METHODS = (
    HostMethod("setWebSocketUrl", (str,), 1, "void setWebSocketUrl(string url)"),
    HostMethod("setRtspStreamUrl", (str,), 1, "void setRtspStreamUrl(string url)"),
    HostMethod("setDebugMode", (bool,), 1, "void setDebugMode(bool enabled)"),
    HostMethod("setDebugPrint", (bool,), 1, "void setDebugPrint(bool enabled)"),
    HostMethod("setTransport", (str,), 1, "void setTransport(string transport)"),
    HostMethod("setUdpPort", (int,), 1, "void setUdpPort(int port)"),
    HostMethod("setFrameDropRatio", (int,), 1, "void setFrameDropRatio(int ratio)"),
    HostMethod(
        "setStreamName", (str, int), 1, "void setStreamName(string name, int position=1)"
    ),
    HostMethod("setInGedi", (bool,), 1, "void setInGedi(bool inGedi)"),
    HostMethod("toggleUndistortion", (), 0, "bool toggleUndistortion()"),
)


def _coerce(method: str, value: Any, expected: type) -> Any:
    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigurationError(f"Argument for {method} must be a boolean")
        return value
    if expected is int:
        if isinstance(value, bool):
            raise ConfigurationError(f"Argument for {method} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Argument for {method} must be an integer, got {value!r}"
            ) from e
    return "" if value is None else str(value)


class HostMethodDispatcher:
    """
    Invokes StreamSession setters by host method name.

    Example:
        dispatcher = HostMethodDispatcher(session)
        dispatcher.invoke("setTransport", ["udp"])
        dispatcher.invoke("setUdpPort", [5600])
    """

    def __init__(self, session: StreamSession) -> None:
        self._session = session
        self._methods: Dict[str, HostMethod] = {m.name: m for m in _METHODS}
        self._handlers: Dict[str, Callable[..., Any]] = {
            "setWebSocketUrl": session.set_control_endpoint,
            "setRtspStreamUrl": session.set_stream_target,
            "setDebugMode": session.set_debug_mode,
            "setDebugPrint": session.set_debug_print,
            "setTransport": session.set_transport_kind,
            "setUdpPort": session.set_datagram_port,
            "setFrameDropRatio": session.set_frame_drop_ratio,
            "setStreamName": session.set_stream_name,
            "setInGedi": session.set_host_edit_mode,
            "toggleUndistortion": session.toggle_auxiliary_feature,
        }

    def method_list(self) -> List[str]:
        """Signatures of all supported methods."""
        return [m.signature for m in _METHODS]

    def has_method(self, name: str) -> bool:
        return name in self._methods

    def invoke(self, name: str, values: Sequence[Any] = ()) -> Any:
        """
        Call a host method.

        Args:
            name: Method name, e.g. 'setTransport'
            values: Positional argument values

        Returns:
            The setter's return value (None for void methods)

        Raises:
            ConfigurationError: Unknown method, wrong argument count or type,
                or a value the setter rejects
        """
        method = self._methods.get(name)
        if method is None:
            raise ConfigurationError(f"Unknown method: {name}")

        count = len(values)
        if count < method.required_args or count > len(method.arg_types):
            raise ConfigurationError(
                f"{name} expects {method.required_args}"
                + (
                    f"-{len(method.arg_types)}"
                    if len(method.arg_types) != method.required_args
                    else ""
                )
                + f" argument(s), got {count}"
            )

        args = [
            _coerce(name, value, expected)
            for value, expected in zip(values, method.arg_types)
        ]
        logger.debug(f"Host invoke {name}({', '.join(repr(a) for a in args)})")
        return self._handlers[name](*args)
