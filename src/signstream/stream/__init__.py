"""
Stream Module
=============

Duplex channel, capture and inbound routing components.

This module provides the streaming layer of the signstream client:
    - ConnectionManager: WebSocket lifecycle, keep-alive and reconnect
    - FrameProducer: Crop + JPEG encode of a live surface
    - StreamingSession: Timed capture loop feeding the connection
    - ResultCorrelator: Inbound message parsing and dispatch
    - ModelSelector: Server-confirmed model switching

Example:
    from signstream.stream import (
        CameraSource, ConnectionManager, FrameProducer,
        ResultCorrelator, StreamingSession,
    )

    connection = ConnectionManager(keepalive_interval=30.0)
    correlator = ResultCorrelator(history_size=8)
    connection.on_message(correlator.on_message)

    await connection.connect("ws://localhost:8000/practice/live-predict", "mini")
    session = StreamingSession(connection, FrameProducer(), CameraSource(0))
    await session.start("Hello")
"""

from signstream.stream.capture import (
    CameraSource,
    FrameProducer,
    FrameSource,
    StillImageSource,
    crop_center,
    encode_jpeg,
)
from signstream.stream.connection import ConnectionManager, ConnectionMetrics
from signstream.stream.correlator import CorrelatorMetrics, ResultCorrelator
from signstream.stream.endpoint import build_stream_url, join_endpoint
from signstream.stream.frame import Frame
from signstream.stream.model_selector import ModelSelector
from signstream.stream.reconnect import ReconnectPolicy
from signstream.stream.session import StreamingSession


__all__ = [
    "CameraSource",
    "ConnectionManager",
    "ConnectionMetrics",
    "CorrelatorMetrics",
    "Frame",
    "FrameProducer",
    "FrameSource",
    "ModelSelector",
    "ReconnectPolicy",
    "ResultCorrelator",
    "StillImageSource",
    "StreamingSession",
    "build_stream_url",
    "crop_center",
    "encode_jpeg",
    "join_endpoint",
]
