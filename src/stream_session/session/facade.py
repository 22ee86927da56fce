"""
Stream Session Facade
=====================

Public contract of a stream session: configuration setters, the current
displayable state, and change notifications.

Setter semantics:
    - Every setter is a no-op when the value equals the current one:
      no reconnect, no control message, no notification
    - Invalid values raise ConfigurationError and leave the configuration
      unchanged
    - Setters never block; connection work is scheduled on the event loop

Example:
    from stream_session.session import StreamSession

    async with StreamSession() as session:
        session.on_output = render
        session.set_stream_target("rtsp://cam1")
        session.set_control_endpoint("ws://10.0.0.5:8765")
        ...
"""

import logging
from typing import Callable, Optional, Union

from stream_session.errors import ConfigurationError
from stream_session.models.configuration import StreamConfiguration, TransportKind
from stream_session.models.output import (
    AuxiliaryFeatureState,
    Diagnostics,
    DisplayableOutput,
    LabelCorner,
    StreamLabel,
)
from stream_session.models.status import SessionState
from stream_session.session.metrics import SessionMetrics
from stream_session.session.state_machine import (
    LIVENESS_INTERVAL_MS,
    SessionStateMachine,
    wall_clock_ms,
)
from stream_session.stream.image_decoder import ImageDecoder, decode_image
from stream_session.transport.base import ControlChannelFactory
from stream_session.transport.local_address import resolve_local_ipv4


logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "stream_session"


class StreamSession:
    """
    One live frame stream with a simple "current frame + status" surface.

    Attributes:
        on_output: Callback for each changed DisplayableOutput
        on_auxiliary: Callback for each changed AuxiliaryFeatureState
    """

    def __init__(
        self,
        config: Optional[StreamConfiguration] = None,
        channel_factory: Optional[ControlChannelFactory] = None,
        decoder: ImageDecoder = decode_image,
        clock: Callable[[], int] = wall_clock_ms,
        local_address_resolver: Callable[[], Optional[str]] = resolve_local_ipv4,
        liveness_interval_ms: int = LIVENESS_INTERVAL_MS,
        debug_mode: bool = False,
        host_edit_mode: bool = False,
        decode_failure_refreshes_freeze: bool = False,
    ) -> None:
        """
        Initialize a session. No network activity happens until start(); setters
        called before then only change the stored configuration.

        Args:
            config: Initial configuration (defaults: nothing configured)
            channel_factory: Builds control channels (WebSocket by default)
            decoder: Payload image decoder
            clock: Epoch-millisecond clock used for frame freshness
            local_address_resolver: Address advertised for UDP delivery
            liveness_interval_ms: Period of the liveness check
            debug_mode: Render late frames instead of suppressing them
            host_edit_mode: Suppress all networking
            decode_failure_refreshes_freeze: Count undecodable frames as alive
        """
        self._machine = SessionStateMachine(
            config or StreamConfiguration(),
            channel_factory=channel_factory,
            decoder=decoder,
            clock=clock,
            local_address_resolver=local_address_resolver,
            liveness_interval_ms=liveness_interval_ms,
            debug_mode=debug_mode,
            host_edit_mode=host_edit_mode,
            decode_failure_refreshes_freeze=decode_failure_refreshes_freeze,
        )
        self._label = StreamLabel()
        self._debug_print = False
        self._saved_log_level: Optional[int] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start timers and connect if an endpoint is configured."""
        self._machine.start()

    async def stop(self) -> None:
        """Close channel and data plane, cancel timers."""
        await self._machine.stop()

    async def __aenter__(self) -> "StreamSession":
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    # =========================================================================
    # Notifications
    # =========================================================================

    @property
    def on_output(self) -> Optional[Callable[[DisplayableOutput], None]]:
        return self._machine.on_output

    @on_output.setter
    def on_output(self, callback: Optional[Callable[[DisplayableOutput], None]]) -> None:
        self._machine.on_output = callback

    @property
    def on_auxiliary(self) -> Optional[Callable[[AuxiliaryFeatureState], None]]:
        return self._machine.on_auxiliary

    @on_auxiliary.setter
    def on_auxiliary(self, callback: Optional[Callable[[AuxiliaryFeatureState], None]]) -> None:
        self._machine.on_auxiliary = callback

    # =========================================================================
    # Setters
    # =========================================================================

    def set_control_endpoint(self, uri: str) -> None:
        """
        Set the control channel URI.

        Once started, opens the channel if currently disconnected (unless in
        host edit mode). A different endpoint while connecting or connected
        closes the live connection and replaces it with one to the new
        endpoint. An empty endpoint disconnects. Before start() the URI is
        only stored.
        """
        new = self._changed(control_endpoint=uri)
        if new is None:
            return
        logger.info(f"Control endpoint set to '{new.control_endpoint}'")
        self._machine.apply_config(new)
        if self._machine.state is not SessionState.DISCONNECTED:
            self._machine.disconnect()
        if new.control_endpoint:
            self._machine.connect()
        else:
            self._machine.disconnect()

    def set_stream_target(self, uri: str) -> None:
        """Set the upstream stream URI; re-sends stream-setup if connected."""
        new = self._changed(stream_target=uri)
        if new is None:
            return
        logger.info(f"Stream target set to '{new.stream_target}'")
        self._machine.apply_config(new)
        self._machine.send_stream_setup()

    def set_transport_kind(self, kind: Union[TransportKind, str]) -> None:
        """
        Select the data-plane transport.

        If connected, the old data plane is torn down before the new one is
        opened, and stream-setup is re-sent so the source redirects frames.

        Raises:
            ConfigurationError: If `kind` names no known transport
        """
        new = self._changed(transport=TransportKind.parse(kind))
        if new is None:
            return
        logger.info(f"Transport set to {new.transport.value}")
        self._machine.apply_config(new)
        if self._machine.state is SessionState.CONNECTED:
            self._machine.rebuild_data_plane()
            self._machine.send_stream_setup()

    def set_datagram_port(self, port: int) -> None:
        """
        Set the local UDP port.

        If connected with the datagram transport, the socket is rebound and
        stream-setup is re-sent.

        Raises:
            ConfigurationError: If the port is outside 1..65535
        """
        new = self._changed(datagram_port=port)
        if new is None:
            return
        logger.info(f"UDP port set to {new.datagram_port}")
        self._machine.apply_config(new)
        if self._machine.state is SessionState.CONNECTED and new.uses_datagram:
            self._machine.rebuild_data_plane()
            self._machine.send_stream_setup()

    def set_frame_drop_ratio(self, ratio: int) -> None:
        """Set the frame thinning hint (clamped to >= 1), used by the next stream-setup."""
        try:
            ratio = max(1, int(ratio))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid frame drop ratio: {ratio!r}") from e
        new = self._changed(frame_drop_ratio=ratio)
        if new is None:
            return
        self._machine.apply_config(new)

    def set_latency_cutoff_ms(self, cutoff_ms: int) -> None:
        new = self._changed(latency_cutoff_ms=cutoff_ms)
        if new is not None:
            self._machine.apply_config(new)

    def set_freeze_timeout_ms(self, timeout_ms: int) -> None:
        new = self._changed(freeze_timeout_ms=timeout_ms)
        if new is not None:
            self._machine.apply_config(new)

    def set_reconnect_delay_ms(self, delay_ms: int) -> None:
        """Takes effect for the next scheduled reconnect."""
        new = self._changed(reconnect_delay_ms=delay_ms)
        if new is not None:
            self._machine.apply_config(new)

    def set_debug_mode(self, enabled: bool) -> None:
        """Render frames over the latency cutoff instead of suppressing them."""
        enabled = bool(enabled)
        if self._machine.policy.debug_mode == enabled:
            return
        self._machine.policy.debug_mode = enabled
        logger.info(f"Debug mode {'enabled' if enabled else 'disabled'}")

    def set_debug_print(self, enabled: bool) -> None:
        """Raise the package logger to DEBUG while enabled."""
        enabled = bool(enabled)
        if self._debug_print == enabled:
            return
        self._debug_print = enabled
        package_logger = logging.getLogger(_PACKAGE_LOGGER)
        if enabled:
            self._saved_log_level = package_logger.level
            package_logger.setLevel(logging.DEBUG)
        else:
            package_logger.setLevel(self._saved_log_level or logging.NOTSET)
            self._saved_log_level = None

    def set_host_edit_mode(self, enabled: bool) -> None:
        """Suppress (True) or allow (False) all connection attempts."""
        enabled = bool(enabled)
        if self._machine.host_edit_mode == enabled:
            return
        logger.info(f"Host edit mode {'on' if enabled else 'off'}")
        self._machine.set_host_edit_mode(enabled)

    def set_stream_name(self, name: str, position: int = LabelCorner.TOP_LEFT) -> None:
        """Set the label drawn in a corner of the view."""
        self._label = StreamLabel(
            name=name or "",
            corner=LabelCorner.from_position(position),
        )

    def toggle_auxiliary_feature(self) -> bool:
        """
        Ask the server to toggle undistortion.

        Returns:
            True if the request was sent (feature available and connected)
        """
        return self._machine.send_toggle_auxiliary()

    # =========================================================================
    # Reads
    # =========================================================================

    def current_displayable(self) -> DisplayableOutput:
        return self._machine.output

    def connection_state(self) -> SessionState:
        return self._machine.state

    def last_delay_ms(self) -> Optional[int]:
        return self._machine.last_delay_ms

    def diagnostics(self) -> Diagnostics:
        return self._machine.diagnostics()

    def auxiliary_state(self) -> AuxiliaryFeatureState:
        return self._machine.auxiliary

    @property
    def configuration(self) -> StreamConfiguration:
        return self._machine.config

    @property
    def stream_label(self) -> StreamLabel:
        return self._label

    @property
    def debug_mode(self) -> bool:
        return self._machine.policy.debug_mode

    @property
    def debug_print(self) -> bool:
        return self._debug_print

    @property
    def host_edit_mode(self) -> bool:
        return self._machine.host_edit_mode

    @property
    def metrics(self) -> SessionMetrics:
        return self._machine.metrics

    @property
    def state_machine(self) -> SessionStateMachine:
        return self._machine

    # =========================================================================
    # Internals
    # =========================================================================

    def _changed(self, **updates) -> Optional[StreamConfiguration]:
        """Validated new snapshot, or None if nothing actually changes."""
        current = self._machine.config
        new = current.with_changes(**updates)
        if all(getattr(new, name) == getattr(current, name) for name in updates):
            return None
        return new
