"""
Error Taxonomy
==============

Exception types surfaced by the streaming client.

Errors are reported to listeners as exception instances rather than raised
across task boundaries. The only exception raised directly to a caller is
NotConnectedError from StreamingSession.start().

Categories:
    - TransportError: connect/send/read failure on the duplex channel
    - ProtocolError: malformed inbound message (connection stays open)
    - ApplicationError: error reported by the inference server
    - ResourceError: capture surface not ready or not readable
"""


class SignStreamError(Exception):
    """Base class for all streaming client errors."""
    pass


class TransportError(SignStreamError):
    """Raised when the duplex channel fails to open, send or receive."""
    pass


class NotConnectedError(TransportError):
    """Raised when an operation requires an open connection."""
    pass


class ProtocolError(SignStreamError):
    """Raised when an inbound message cannot be parsed or validated."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ApplicationError(SignStreamError):
    """Error message reported by the inference server."""
    pass


class ResourceError(SignStreamError):
    """Raised when a frame source cannot provide an image."""
    pass
