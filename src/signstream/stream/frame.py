"""
Frame Data Model
=================

Outbound frame representation for the capture pipeline.

A Frame is built by the StreamingSession from a FrameProducer payload and
written to the channel straight away. Frames are never retained or retried.

Design Rules:
    - sequence_number comes from the connection and resets on reconnect
    - payload is the encoded JPEG (raw bytes, not base64)
"""

from dataclasses import dataclass

from signstream.models.messages import FrameRequest


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Captured frame ready to send.

    Attributes:
        sequence_number: Per-connection monotonic counter
        payload: JPEG-encoded image bytes
        captured_at: UNIX timestamp when the frame was captured
    """

    sequence_number: int
    payload: bytes
    captured_at: float

    def to_request(self) -> FrameRequest:
        """Wire message for this frame."""
        return FrameRequest.from_payload(self.payload)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(sequence_number={self.sequence_number}, "
            f"captured_at={self.captured_at:.3f}, "
            f"bytes={len(self.payload)})"
        )
