"""
Wire Message Schemas
====================

Pydantic models for the JSON text messages exchanged with the inference
service over the duplex channel.

Client -> Server:
    {"type": "frame", "frame": "data:image/jpeg;base64,..."}
    {"type": "ping"}
    {"type": "stop"}
    {"type": "analyze", "target_word": "Hello"}
    {"type": "switch_model", "model": "pro"}

Server -> Client:
    {"type": "connected", "model_info": {...}}
    {"type": "prediction", "letter": "Alif", "confidence": 0.93, "timestamp": 1707321234.5}
    {"type": "final_result", "result": {"target_word": ..., "predictions": [...], ...}}
    {"type": "model_switched", "model_info": {...}}
    {"type": "error", "message": "..."}
    {"type": "pong"}
    {"type": "frame_received", "frame_count": 12}
    {"type": "progress", "frames_processed": 30, "predictions_count": 4}
    {"type": "stopped", "total_frames": 40, "total_predictions": 6}

Every inbound message carries a "type" discriminator. INBOUND_MESSAGE_TYPES
maps the discriminator to its schema; anything not in the map is unknown.
"""

import base64
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from signstream.models.state import PredictionResult


# =============================================================================
# Outbound (client -> server)
# =============================================================================

class FrameRequest(BaseModel):
    """One captured frame, encoded as a JPEG data URL."""

    type: Literal["frame"] = "frame"
    frame: str = Field(..., description="JPEG data URL")

    @classmethod
    def from_payload(cls, payload: bytes) -> "FrameRequest":
        encoded = base64.b64encode(payload).decode("ascii")
        return cls(frame=f"data:image/jpeg;base64,{encoded}")


class PingRequest(BaseModel):
    """Keep-alive probe."""

    type: Literal["ping"] = "ping"


class StopRequest(BaseModel):
    """Ends the current capture burst."""

    type: Literal["stop"] = "stop"


class AnalyzeRequest(BaseModel):
    """Asks the server to score the completed burst against a target."""

    type: Literal["analyze"] = "analyze"
    target_word: str = Field(..., min_length=1)


class SwitchModelRequest(BaseModel):
    """Requests a server-side model swap."""

    type: Literal["switch_model"] = "switch_model"
    model: str = Field(..., min_length=1)


OutboundMessage = Union[
    FrameRequest, PingRequest, StopRequest, AnalyzeRequest, SwitchModelRequest
]


# =============================================================================
# Inbound (server -> client)
# =============================================================================

class _Inbound(BaseModel):
    """Base for server messages; unknown extra fields are tolerated."""

    model_config = ConfigDict(extra="allow")


class ConnectedMessage(_Inbound):
    type: Literal["connected"] = "connected"
    message: Optional[str] = None
    model_info: Dict[str, Any] = Field(default_factory=dict)


class PredictionMessage(_Inbound):
    """Incremental prediction for a single processed frame."""

    type: Literal["prediction"] = "prediction"
    letter: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0)
    timestamp: float

    def to_result(self) -> PredictionResult:
        return PredictionResult(
            label=self.letter,
            confidence=self.confidence,
            timestamp=self.timestamp,
        )


class RankedPrediction(_Inbound):
    word: str
    confidence: float = Field(..., ge=0.0)
    rank: int = Field(default=0, ge=0)


class AggregateResult(_Inbound):
    """
    Server-computed result over a whole capture burst.

    Attributes:
        target_word: Label the burst was scored against
        predictions: Ranked predictions, best first
        is_top_4_correct: Whether the target is within the top four
        model_used: Model variant that produced the result
    """

    target_word: Optional[str] = None
    predictions: List[RankedPrediction] = Field(default_factory=list)
    top_predictions: List[RankedPrediction] = Field(default_factory=list)
    is_top_4_correct: bool = False
    is_match: Optional[bool] = None
    match_confidence: Optional[float] = None
    model_used: Optional[str] = None

    @property
    def top_prediction(self) -> Optional[RankedPrediction]:
        if not self.predictions:
            return None
        return min(self.predictions, key=lambda p: p.rank)


class FinalResultMessage(_Inbound):
    type: Literal["final_result"] = "final_result"
    result: AggregateResult


class ModelSwitchedMessage(_Inbound):
    type: Literal["model_switched"] = "model_switched"
    model_info: Dict[str, Any] = Field(default_factory=dict)

    @property
    def model_name(self) -> Optional[str]:
        """Variant id from model_type or model, if the server included one."""
        for key in ("model_type", "model"):
            value = self.model_info.get(key)
            if isinstance(value, str) and value:
                return value
        return None


class ErrorMessage(_Inbound):
    type: Literal["error"] = "error"
    message: str = "Unknown WebSocket error"


class PongMessage(_Inbound):
    type: Literal["pong"] = "pong"


class FrameReceivedMessage(_Inbound):
    type: Literal["frame_received"] = "frame_received"
    frame_count: int = Field(default=0, ge=0)


class ProgressMessage(_Inbound):
    type: Literal["progress"] = "progress"
    frames_processed: int = Field(default=0, ge=0)
    predictions_count: int = Field(default=0, ge=0)
    latest_predictions: List[RankedPrediction] = Field(default_factory=list)


class StoppedMessage(_Inbound):
    type: Literal["stopped"] = "stopped"
    total_frames: int = Field(default=0, ge=0)
    total_predictions: int = Field(default=0, ge=0)


InboundMessage = Union[
    ConnectedMessage,
    PredictionMessage,
    FinalResultMessage,
    ModelSwitchedMessage,
    ErrorMessage,
    PongMessage,
    FrameReceivedMessage,
    ProgressMessage,
    StoppedMessage,
]

INBOUND_MESSAGE_TYPES: Dict[str, Type[_Inbound]] = {
    "connected": ConnectedMessage,
    "prediction": PredictionMessage,
    "final_result": FinalResultMessage,
    "model_switched": ModelSwitchedMessage,
    "error": ErrorMessage,
    "pong": PongMessage,
    "frame_received": FrameReceivedMessage,
    "progress": ProgressMessage,
    "stopped": StoppedMessage,
}
