"""
Stream Session Client
=====================

Client that keeps a live frame stream delivered over a control/data
connection and exposes a simple "current frame + status" surface.

Components:
    - stream: frame envelope codec and image decoding
    - transport: WebSocket control channel, ordered and datagram data planes
    - session: connection state machine, freshness policy, public facade
    - host: string-typed host method dispatch onto the facade

Example:
    from stream_session.session import StreamSession
    from stream_session.models import StreamConfiguration

    config = StreamConfiguration(
        control_endpoint="ws://10.0.0.5:8765",
        stream_target="rtsp://cam1",
    )
    async with StreamSession(config) as session:
        session.on_output = render

    # The HTTP service is started via main.py
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
