"""
Data Models
===========

Pydantic models for the signstream client.

Models:
    State:
        - ConnectionState: Duplex channel lifecycle states
        - PredictionResult: Incremental prediction kept in history
        - SessionStats: Practice score counters
        - ClientStatus: Inspectable client snapshot

    Messages:
        - FrameRequest, PingRequest, StopRequest, AnalyzeRequest,
          SwitchModelRequest: client -> server
        - ConnectedMessage, PredictionMessage, FinalResultMessage,
          ModelSwitchedMessage, ErrorMessage, PongMessage, ...: server -> client
"""

from signstream.models.state import (
    ClientStatus,
    ConnectionState,
    PredictionResult,
    SessionStats,
)
from signstream.models.messages import (
    INBOUND_MESSAGE_TYPES,
    AggregateResult,
    AnalyzeRequest,
    ConnectedMessage,
    ErrorMessage,
    FinalResultMessage,
    FrameReceivedMessage,
    FrameRequest,
    InboundMessage,
    ModelSwitchedMessage,
    OutboundMessage,
    PingRequest,
    PongMessage,
    PredictionMessage,
    ProgressMessage,
    RankedPrediction,
    StopRequest,
    StoppedMessage,
    SwitchModelRequest,
)

__all__ = [
    # State
    "ConnectionState",
    "PredictionResult",
    "SessionStats",
    "ClientStatus",
    # Outbound
    "FrameRequest",
    "PingRequest",
    "StopRequest",
    "AnalyzeRequest",
    "SwitchModelRequest",
    "OutboundMessage",
    # Inbound
    "ConnectedMessage",
    "PredictionMessage",
    "RankedPrediction",
    "AggregateResult",
    "FinalResultMessage",
    "ModelSwitchedMessage",
    "ErrorMessage",
    "PongMessage",
    "FrameReceivedMessage",
    "ProgressMessage",
    "StoppedMessage",
    "InboundMessage",
    "INBOUND_MESSAGE_TYPES",
]
