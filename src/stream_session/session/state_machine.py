"""
Session State Machine
=====================

Owns the connection lifecycle of one stream session.

States:
    DISCONNECTED --connect()--------------> CONNECTING
    CONNECTING   --channel open-----------> CONNECTED
    CONNECTING   --open failed------------> DISCONNECTED (+ reconnect timer)
    CONNECTED    --channel closed/lost----> DISCONNECTED (+ reconnect timer)

On CONNECTED:
    - auxiliary (undistortion) state and freeze tracking are reset
    - the data plane for the configured transport is (re)opened
    - the stream-setup control message is sent

On loss:
    - image, auxiliary state and last-good-frame time are cleared
    - the data plane is closed
    - one reconnect is scheduled after reconnect_delay_ms; a pending
      reconnect timer is replaced, never stacked

Liveness:
    A periodic check (500 ms) retries the connection when not connected,
    retries a failed datagram bind, and marks the stream FROZEN when no
    frame was accepted within freeze_timeout_ms. Freezing does not drop
    the connection.
    FROZEN lifts as soon as the condition no longer holds.

Design Rules:
    - All state is mutated on the event loop that runs the callbacks
    - Callbacks from a channel that is no longer current are ignored
    - Nothing is mutated once stop() has begun
    - Host edit mode suppresses every connection attempt and reconnect
    - No connection is attempted before start(); setters called earlier
      only store configuration
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, Optional

from stream_session.errors import ControlMessageError
from stream_session.models.configuration import StreamConfiguration
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
)
from stream_session.models.status import (
    DisplayStatus,
    SessionState,
    derive_display_status,
)
from stream_session.session.metrics import SessionMetrics
from stream_session.session.policy import FrameDisposition, FreshnessPolicy
from stream_session.stream.image_decoder import ImageDecoder, decode_image
from stream_session.transport.base import (
    ControlChannel,
    ControlChannelFactory,
    DataPlane,
    OrderedDataPlane,
)
from stream_session.transport.control_channel import WebSocketControlChannel
from stream_session.transport.datagram import DatagramDataPlane
from stream_session.transport.local_address import resolve_local_ipv4


logger = logging.getLogger(__name__)

LIVENESS_INTERVAL_MS = 500


def wall_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SessionStateMachine:
    """
    Connection lifecycle, data-plane supervision and display state.

    The public, idempotent setter surface lives in StreamSession; this class
    performs the transitions those setters request.

    Attributes:
        config: Current configuration snapshot
        policy: Freshness & latency policy
        metrics: Session counters
        host_edit_mode: Suppress all networking
        on_output: Called with each changed DisplayableOutput
        on_auxiliary: Called with each changed AuxiliaryFeatureState
    """

    def __init__(
        self,
        config: StreamConfiguration,
        channel_factory: Optional[ControlChannelFactory] = None,
        decoder: ImageDecoder = decode_image,
        clock: Callable[[], int] = wall_clock_ms,
        local_address_resolver: Callable[[], Optional[str]] = resolve_local_ipv4,
        liveness_interval_ms: int = LIVENESS_INTERVAL_MS,
        debug_mode: bool = False,
        host_edit_mode: bool = False,
        decode_failure_refreshes_freeze: bool = False,
    ) -> None:
        self.config = config
        self.policy = FreshnessPolicy(
            latency_cutoff_ms=config.latency_cutoff_ms,
            debug_mode=debug_mode,
            decoder=decoder,
            decode_failure_refreshes_freeze=decode_failure_refreshes_freeze,
        )
        self.metrics = SessionMetrics()
        self.host_edit_mode = host_edit_mode
        self.liveness_interval_ms = liveness_interval_ms

        self.on_output: Optional[Callable[[DisplayableOutput], None]] = None
        self.on_auxiliary: Optional[Callable[[AuxiliaryFeatureState], None]] = None

        self._channel_factory = channel_factory or WebSocketControlChannel
        self._clock = clock
        self._resolve_local_address = local_address_resolver

        self._state = SessionState.DISCONNECTED
        self._channel: Optional[ControlChannel] = None
        self._data_plane: Optional[DataPlane] = None

        self._verdict: Optional[DisplayStatus] = None
        self._frozen: bool = False
        self._image = None
        self._image_received_at_ms: Optional[int] = None
        self._output = DisplayableOutput.for_status(DisplayStatus.NO_CONNECTION)
        self._auxiliary = AuxiliaryFeatureState()
        self._last_frame: Optional[FrameDisposition] = None

        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._liveness_task: Optional[asyncio.Task] = None
        self._started: bool = False
        self._stopping: bool = False

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def output(self) -> DisplayableOutput:
        return self._output

    @property
    def auxiliary(self) -> AuxiliaryFeatureState:
        return self._auxiliary

    @property
    def data_plane(self) -> Optional[DataPlane]:
        return self._data_plane

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def stopping(self) -> bool:
        return self._stopping

    @property
    def last_delay_ms(self) -> Optional[int]:
        """Delay of the last frame, None if undefined (none yet, or malformed)."""
        if self._last_frame is None:
            return None
        return self._last_frame.delay_ms

    def diagnostics(self) -> Diagnostics:
        last = self._last_frame
        return Diagnostics(
            connection_state=self._state,
            display_status=self._output.status,
            last_delay_ms=self.last_delay_ms,
            last_server_timestamp_ms=last.server_timestamp_ms if last else None,
            last_receive_timestamp_ms=last.received_at_ms if last else None,
            last_good_frame_ms=self.policy.last_good_frame_ms,
            over_latency_cutoff=last.over_cutoff if last else False,
            server_host=self.config.control_host,
            stream_target=self.config.stream_target or None,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the liveness check and open the channel if configured."""
        if self._stopping:
            return
        self._started = True
        if self._liveness_task is None:
            self._liveness_task = asyncio.get_running_loop().create_task(
                self._liveness_loop(),
                name="session_liveness",
            )
        self.connect()

    async def stop(self) -> None:
        """
        Tear the session down.

        Closes the control channel, then the data plane, then cancels the
        reconnect timer and the liveness task. No callback is processed
        after this begins.
        """
        if self._stopping:
            return
        self._stopping = True
        logger.info("Stream session stopping...")

        channel = self._channel
        self._channel = None
        if channel is not None:
            channel.close()

        self._close_data_plane()
        self._cancel_reconnect()

        if self._liveness_task is not None:
            self._liveness_task.cancel()
            try:
                await self._liveness_task
            except asyncio.CancelledError:
                pass
            self._liveness_task = None

        wait_closed = getattr(channel, "wait_closed", None)
        if wait_closed is not None:
            await wait_closed()

        self._state = SessionState.DISCONNECTED
        logger.info("Stream session stopped")

    def connect(self) -> bool:
        """
        Open the control channel if allowed and not already in progress.

        Returns:
            True if a new connection attempt was started
        """
        if not self._started or self._stopping or self.host_edit_mode:
            return False
        if not self.config.control_endpoint:
            return False
        if self._state is not SessionState.DISCONNECTED:
            return False

        self._cancel_reconnect()
        self._state = SessionState.CONNECTING
        self.metrics.connect_attempts += 1
        logger.info(f"Connecting to control endpoint {self.config.control_endpoint}")

        channel = self._channel_factory(self.config.control_endpoint, self)
        self._channel = channel
        channel.open()
        return True

    def disconnect(self) -> None:
        """Close the connection locally without scheduling a reconnect."""
        self._cancel_reconnect()
        channel = self._channel
        if channel is None:
            return
        self._channel = None
        channel.close()
        logger.info(f"Disconnected from {channel.endpoint}")
        self._reset_connection()

    def set_host_edit_mode(self, enabled: bool) -> None:
        self.host_edit_mode = enabled
        if enabled:
            self._cancel_reconnect()
        else:
            self.connect()

    # =========================================================================
    # Configuration-driven actions
    # =========================================================================

    def apply_config(self, config: StreamConfiguration) -> None:
        """Swap in a new snapshot and sync the policy from it."""
        self.config = config
        self.policy.latency_cutoff_ms = config.latency_cutoff_ms

    def send_stream_setup(self) -> bool:
        """
        Send `set_stream` for the current configuration.

        Returns:
            True if the message was queued
        """
        if self._state is not SessionState.CONNECTED or self._channel is None:
            return False
        if not self.config.stream_target:
            logger.debug("No stream target configured, skipping set_stream")
            return False
        if self.config.uses_datagram and not self.config.datagram_port:
            logger.warning("UDP transport selected without a port, skipping set_stream")
            return False

        local_ip = None
        if self.config.uses_datagram:
            local_ip = self._resolve_local_address()

        command = SetStreamCommand.from_configuration(self.config, local_ip=local_ip)
        sent = self._channel.send_text(command.to_json())
        if sent:
            self.metrics.stream_setups_sent += 1
            logger.info(
                f"Sent set_stream: url={command.url}, "
                f"transport={command.transport.value}, udp_port={command.udp_port}"
            )
        return sent

    def rebuild_data_plane(self) -> None:
        """Tear down and reopen the data plane for the configured transport."""
        if self._state is not SessionState.CONNECTED:
            return
        self._open_data_plane()
        # Nothing has arrived on the new transport yet
        self._verdict = None
        self._clear_image()
        self._refresh_output()

    def send_toggle_auxiliary(self) -> bool:
        """
        Request an undistortion toggle.

        Only sent when the feature is announced available and the session
        is connected; the resulting state arrives as a later notification.
        """
        if self._state is not SessionState.CONNECTED or self._channel is None:
            return False
        if not self._auxiliary.available:
            logger.debug("Undistortion toggle ignored, feature not available")
            return False
        return self._channel.send_text(ToggleUndistortionCommand().to_json())

    # =========================================================================
    # Control channel callbacks
    # =========================================================================

    def on_channel_open(self, channel: ControlChannel) -> None:
        if not self._is_current(channel):
            return

        self._state = SessionState.CONNECTED
        self._set_auxiliary(AuxiliaryFeatureState())
        self.policy.reset()
        self._verdict = None
        self._frozen = False
        self._last_frame = None
        self._clear_image()
        logger.info(f"Session connected to {channel.endpoint}")

        self._open_data_plane()
        self.send_stream_setup()
        self._refresh_output()

    def on_channel_binary(self, channel: ControlChannel, data: bytes) -> None:
        if not self._is_current(channel) or self._data_plane is None:
            return
        if not self._data_plane.deliver_channel_message(data):
            self.metrics.frames_dropped += 1
            logger.debug(
                f"Dropping {len(data)}-byte channel frame, "
                f"data plane is {self._data_plane.kind.value}"
            )

    def on_channel_text(self, channel: ControlChannel, text: str) -> None:
        if not self._is_current(channel):
            return

        self.metrics.control_messages += 1
        try:
            message = parse_control_message(text)
        except ControlMessageError as e:
            self.metrics.control_errors += 1
            logger.warning(f"Dropping control message: {e}")
            return

        if message is None:
            logger.debug(f"Ignoring unknown control message: {text[:120]}")
        elif isinstance(message, UndistortionInfo):
            self._set_auxiliary(AuxiliaryFeatureState(
                available=message.available,
                enabled=message.enabled,
                mode=message.mode,
            ))
        elif isinstance(message, UndistortionState):
            self._set_auxiliary(replace(
                self._auxiliary,
                enabled=message.enabled,
                mode=message.mode,
            ))

    def on_channel_closed(self, channel: ControlChannel, reason: Optional[str]) -> None:
        if not self._is_current(channel):
            return

        self._channel = None
        was_connected = self._state is SessionState.CONNECTED
        if was_connected:
            self.metrics.disconnects += 1
            logger.warning(f"Control channel lost: {reason}")
        else:
            logger.warning(f"Control channel open failed: {reason}")

        self._reset_connection()
        self._schedule_reconnect()

    # =========================================================================
    # Frame path
    # =========================================================================

    def handle_frame_bytes(self, data: bytes) -> None:
        """Evaluate one frame from either data plane and update the display."""
        if self._stopping or self._state is not SessionState.CONNECTED:
            return

        self.metrics.frames_received += 1
        disposition = self.policy.evaluate(data, self._clock())
        self._last_frame = disposition
        self._verdict = disposition.verdict

        if disposition.verdict is DisplayStatus.LIVE:
            self.metrics.frames_rendered += 1
            self._frozen = False
            self._image = disposition.image
            self._image_received_at_ms = disposition.received_at_ms
        else:
            self._clear_image()

        if disposition.verdict is DisplayStatus.HIGH_LATENCY:
            self.metrics.frames_suppressed += 1
        elif disposition.verdict is DisplayStatus.DECODE_ERROR:
            self.metrics.decode_errors += 1
        elif disposition.verdict is DisplayStatus.MALFORMED_FRAME:
            self.metrics.malformed_frames += 1

        self._refresh_output()

    # =========================================================================
    # Timers
    # =========================================================================

    def check_liveness(self) -> None:
        """One liveness tick: retry connection, retry bind, detect freeze."""
        if self._stopping:
            return

        if self._state is not SessionState.CONNECTED:
            self._refresh_output()
            self.connect()
            return

        if self._data_plane is not None and not self._data_plane.ready:
            logger.debug(f"Retrying {self._data_plane.kind.value} data plane")
            self._data_plane.open()

        if not self._frozen and self.policy.is_frozen(
            self._clock(), self.config.freeze_timeout_ms
        ):
            self._frozen = True
            logger.warning(
                f"No frame accepted for more than "
                f"{self.config.freeze_timeout_ms}ms, stream appears frozen"
            )

        self._refresh_output()

    async def _liveness_loop(self) -> None:
        interval = self.liveness_interval_ms / 1000.0
        while not self._stopping:
            await asyncio.sleep(interval)
            try:
                self.check_liveness()
            except Exception:
                logger.exception("Liveness check failed")

    def _schedule_reconnect(self) -> None:
        if self._stopping or self.host_edit_mode or not self.config.control_endpoint:
            return

        self._cancel_reconnect()
        delay_s = self.config.reconnect_delay_ms / 1000.0
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            delay_s, self._on_reconnect_timer
        )
        self.metrics.reconnects_scheduled += 1
        logger.info(f"Reconnecting in {delay_s:.1f}s")

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._state is SessionState.DISCONNECTED:
            self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # =========================================================================
    # Internals
    # =========================================================================

    def _is_current(self, channel: ControlChannel) -> bool:
        return not self._stopping and channel is self._channel

    def _open_data_plane(self) -> None:
        self._close_data_plane()
        if self.config.uses_datagram:
            plane: DataPlane = DatagramDataPlane(
                self.config.datagram_port, sink=self.handle_frame_bytes
            )
        else:
            plane = OrderedDataPlane(sink=self.handle_frame_bytes)
        self._data_plane = plane
        if not plane.open():
            logger.warning(
                f"{plane.kind.value} data plane unavailable, "
                f"control channel stays open"
            )

    def _close_data_plane(self) -> None:
        if self._data_plane is not None:
            self._data_plane.close()
            self._data_plane = None

    def _reset_connection(self) -> None:
        self._state = SessionState.DISCONNECTED
        self._close_data_plane()
        self._set_auxiliary(AuxiliaryFeatureState())
        self.policy.reset()
        self._verdict = None
        self._frozen = False
        self._clear_image()
        self._refresh_output()

    def _set_auxiliary(self, auxiliary: AuxiliaryFeatureState) -> None:
        if auxiliary == self._auxiliary:
            return
        self._auxiliary = auxiliary
        logger.info(
            f"Undistortion: available={auxiliary.available}, "
            f"enabled={auxiliary.enabled}, mode={auxiliary.mode}"
        )
        if self.on_auxiliary is not None:
            self.on_auxiliary(auxiliary)

    def _clear_image(self) -> None:
        self._image = None
        self._image_received_at_ms = None

    def _refresh_output(self) -> None:
        """
        Recompute the displayable output, notifying only on change.

        Freezing is detected by the liveness tick, but lifts as soon as the
        freeze condition no longer holds (a refreshed timer or a longer
        timeout). The last accepted image is kept while frozen and shown
        again if the stream turns out not to be frozen.
        """
        if self._frozen and not self.policy.is_frozen(
            self._clock(), self.config.freeze_timeout_ms
        ):
            self._frozen = False
            logger.info("Freeze condition cleared")

        data_plane_ready = self._data_plane is not None and self._data_plane.ready
        status = derive_display_status(
            self._state, data_plane_ready, self._frozen, self._verdict
        )
        live = status is DisplayStatus.LIVE

        output = DisplayableOutput(
            status=status,
            image=self._image if live else None,
            received_at_ms=self._image_received_at_ms if live else None,
        )
        if output.same_as(self._output):
            return

        previous = self._output.status
        self._output = output
        if status is not previous:
            logger.info(f"Display status: {previous.value} -> {status.value}")
        if self.on_output is not None:
            self.on_output(output)
