"""
Stream Session Configuration
============================

Settings for the stream session service, read once at import.

Precedence: STREAM_* environment variables, then the YAML file
($STREAM_CONFIG, else ./config.yaml or ./config.yml), then defaults.

Environment Variable Mapping:
    STREAM_CONTROL_URL         -> session.control_endpoint
    STREAM_TARGET_URL          -> session.stream_target
    STREAM_TRANSPORT           -> session.transport
    STREAM_UDP_PORT            -> session.datagram_port
    STREAM_FRAME_DROP_RATIO    -> session.frame_drop_ratio
    STREAM_LATENCY_CUTOFF_MS   -> session.latency_cutoff_ms
    STREAM_FREEZE_TIMEOUT_MS   -> session.freeze_timeout_ms
    STREAM_RECONNECT_DELAY_MS  -> session.reconnect_delay_ms
    STREAM_DEBUG_MODE          -> session.debug_mode
    STREAM_SERVER_PORT         -> server.port
    STREAM_LOG_LEVEL           -> logging.level
    PORT                       -> server.port (container platforms)

Example:
    from stream_session.config import settings

    print(settings.session.control_endpoint)
    print(settings.session.latency_cutoff_ms)
"""

import os
import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from stream_session.models.configuration import StreamConfiguration, TransportKind


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="stream-session-client", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SessionConfig(BaseModel):
    """Stream session configuration."""

    control_endpoint: str = Field(
        default="",
        description="WebSocket URL of the control channel ('' = not configured)",
    )
    stream_target: str = Field(
        default="",
        description="URI of the upstream stream (e.g. rtsp://cam1)",
    )
    transport: TransportKind = Field(
        default=TransportKind.ORDERED_CHANNEL,
        description="Data-plane transport: 'websocket' or 'udp'",
    )
    datagram_port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Local UDP port (required for 'udp')",
    )
    frame_drop_ratio: int = Field(
        default=1,
        ge=1,
        description="Advisory frame thinning hint sent to the server",
    )
    latency_cutoff_ms: int = Field(
        default=150,
        gt=0,
        description="Frames older than this are suppressed",
    )
    freeze_timeout_ms: int = Field(
        default=500,
        gt=0,
        description="No accepted frame for this long marks the stream frozen",
    )
    reconnect_delay_ms: int = Field(
        default=5000,
        gt=0,
        description="Delay before reconnecting after a lost connection",
    )
    liveness_interval_ms: int = Field(
        default=500,
        ge=50,
        description="Period of the liveness check",
    )
    debug_mode: bool = Field(
        default=False,
        description="Render frames over the latency cutoff",
    )
    host_edit_mode: bool = Field(
        default=False,
        description="Suppress all network activity",
    )
    decode_failure_refreshes_freeze: bool = Field(
        default=False,
        description="Count undecodable frames as alive for freeze detection",
    )

    @field_validator("transport", mode="before")
    @classmethod
    def _parse_transport(cls, value: Any) -> TransportKind:
        return TransportKind.parse(value)

    def to_stream_configuration(self) -> StreamConfiguration:
        """Build the immutable session snapshot from these settings."""
        return StreamConfiguration(
            control_endpoint=self.control_endpoint,
            stream_target=self.stream_target,
            transport=self.transport,
            datagram_port=self.datagram_port,
            frame_drop_ratio=self.frame_drop_ratio,
            latency_cutoff_ms=self.latency_cutoff_ms,
            freeze_timeout_ms=self.freeze_timeout_ms,
            reconnect_delay_ms=self.reconnect_delay_ms,
        )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the stream session service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

_CONFIG_CANDIDATES = (
    Path("config.yaml"),
    Path("config.yml"),
    Path(__file__).resolve().parent.parent.parent / "config.yaml",
)


def _find_config_file() -> Optional[Path]:
    """First existing config file: $STREAM_CONFIG, then the usual names."""
    if explicit := os.environ.get("STREAM_CONFIG"):
        return Path(explicit)
    return next((path for path in _CONFIG_CANDIDATES if path.is_file()), None)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from defaults, a YAML file and the environment.

    Environment variables win over the file, the file wins over defaults.

    Args:
        config_path: Explicit YAML path. When None, $STREAM_CONFIG and then
            config.yaml / config.yml are tried.

    Returns:
        Settings: Validated configuration

    Raises:
        pydantic.ValidationError: If a value is out of range or unknown
    """
    path = Path(config_path) if config_path else _find_config_file()

    raw: dict = {}
    if path is not None and path.is_file():
        logger.info(f"Reading configuration from {path}")
        with path.open("r") as fh:
            raw = yaml.safe_load(fh) or {}
    else:
        logger.warning("No config file, falling back to defaults and STREAM_* variables")

    _apply_env_overrides(raw)
    return Settings.model_validate(raw)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env var -> (session field, converter)
_SESSION_ENV = {
    "STREAM_CONTROL_URL": ("control_endpoint", str),
    "STREAM_TARGET_URL": ("stream_target", str),
    "STREAM_TRANSPORT": ("transport", lambda v: v.strip().lower()),
    "STREAM_UDP_PORT": ("datagram_port", int),
    "STREAM_FRAME_DROP_RATIO": ("frame_drop_ratio", int),
    "STREAM_LATENCY_CUTOFF_MS": ("latency_cutoff_ms", int),
    "STREAM_FREEZE_TIMEOUT_MS": ("freeze_timeout_ms", int),
    "STREAM_RECONNECT_DELAY_MS": ("reconnect_delay_ms", int),
    "STREAM_DEBUG_MODE": ("debug_mode", _env_flag),
}


def _apply_env_overrides(raw: dict) -> None:
    """Overlay STREAM_* (and PORT) variables onto the raw config dict."""
    session = raw.setdefault("session", {})
    for env_name, (field, convert) in _SESSION_ENV.items():
        if value := os.environ.get(env_name):
            session[field] = convert(value)

    # PORT is what container platforms inject
    server_port = os.environ.get("PORT") or os.environ.get("STREAM_SERVER_PORT")
    if server_port:
        raw.setdefault("server", {})["port"] = int(server_port)

    if level := os.environ.get("STREAM_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = level


_JSON_LOG_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)
_TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(settings: Settings) -> None:
    """
    Configure root logging from settings.

    The websockets library logs every frame at DEBUG, so it is held at
    INFO unless the service itself runs at DEBUG.
    """
    level = logging.getLevelName(settings.logging.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=_JSON_LOG_FORMAT if settings.logging.format == "json" else _TEXT_LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    if level > logging.DEBUG:
        logging.getLogger("websockets").setLevel(logging.INFO)


# =============================================================================
# Global Settings Instance
# =============================================================================

settings = load_config()
