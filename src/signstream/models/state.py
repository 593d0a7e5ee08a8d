"""
Client State Models
===================

State owned by the streaming client components.

Core Concepts:
    - ConnectionState: lifecycle of the duplex channel
    - PredictionResult: one incremental prediction kept in recent history
    - SessionStats: practice score counters (owned by SessionScorer)
    - ClientStatus: inspectable snapshot for the host UI / control API

State Machine (ConnectionState):
    DISCONNECTED --connect()--> CONNECTING --open ok--> CONNECTED
    CONNECTING   --error/close--> DISCONNECTED
    CONNECTED    --close(normal)--> DISCONNECTED
    CONNECTED    --close(abnormal)--> DISCONNECTED --(delay)--> CONNECTING
    CONNECTED/CONNECTING --disconnect()--> CLOSING --> DISCONNECTED
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ConnectionState(str, Enum):
    """
    Lifecycle states of the duplex channel.

    Only ConnectionManager transitions between these states.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class PredictionResult(BaseModel):
    """Incremental single-label prediction for live feedback."""

    label: str = Field(..., description="Predicted sign label")
    confidence: float = Field(..., ge=0.0, description="Model confidence")
    timestamp: float = Field(..., description="Server timestamp of the prediction")


class SessionStats(BaseModel):
    """
    Practice score counters.

    Attributes:
        correct: Number of correct outcomes
        total: Number of scored outcomes
        current_streak: Consecutive correct outcomes ending now
        best_streak: Longest streak in this session
    """

    correct: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)

    @property
    def accuracy(self) -> float:
        """Fraction of correct outcomes (0.0 when nothing scored)."""
        if self.total == 0:
            return 0.0
        return self.correct / self.total


class ClientStatus(BaseModel):
    """Snapshot of everything the host needs to render the session."""

    mode: str
    connection_state: ConnectionState
    last_error: Optional[str] = None
    is_live: bool = False
    target_label: Optional[str] = None
    frames_sent: int = 0
    server_frame_count: int = 0
    active_model: str
    pending_model: Optional[str] = None
    model_info: Dict[str, Any] = Field(default_factory=dict)
    current_prediction: Optional[PredictionResult] = None
    recent_predictions: List[PredictionResult] = Field(default_factory=list)
    stats: SessionStats = Field(default_factory=SessionStats)
    reconnect_count: int = 0
