"""
Model Selector
==============

Requests a server-side model swap mid-session.

The requested variant is only pending until the server confirms it with a
model_switched message; nothing is applied optimistically. On confirmation
the connection's model_variant is updated so later reconnects ask for the
confirmed model.
"""

import logging
from typing import Any, Dict, Optional

from signstream.models.messages import (
    ConnectedMessage,
    ModelSwitchedMessage,
    SwitchModelRequest,
)
from signstream.models.state import ConnectionState
from signstream.stream.connection import ConnectionManager
from signstream.stream.correlator import ResultCorrelator


logger = logging.getLogger(__name__)


class ModelSelector:
    """
    Tracks the active and pending model variant.

    Attributes:
        active_variant: Variant confirmed by the server (or chosen on connect)
        pending_variant: Variant requested but not yet confirmed
        model_info: Latest model metadata from the server
    """

    def __init__(
        self,
        connection: ConnectionManager,
        correlator: ResultCorrelator,
        initial_variant: str,
    ) -> None:
        self.connection = connection
        self.active_variant: str = initial_variant
        self.pending_variant: Optional[str] = None
        self.model_info: Dict[str, Any] = {}

        correlator.subscribe("connected", self._on_connected)
        correlator.subscribe("model_switched", self._on_model_switched)

    async def switch_model(self, variant: str) -> bool:
        """
        Ask the server to swap models.

        Returns:
            True if the request was sent; confirmation arrives later
        """
        if self.connection.state is not ConnectionState.CONNECTED:
            logger.warning(f"Cannot switch to {variant!r}, not connected")
            return False

        sent = await self.connection.send(SwitchModelRequest(model=variant))
        if sent:
            self.pending_variant = variant
            logger.info(f"Model switch requested: {self.active_variant} -> {variant}")
        return sent

    def _on_connected(self, message: ConnectedMessage) -> None:
        self.model_info = dict(message.model_info)
        # A fresh connection runs whatever model was asked for on connect
        if self.connection.model_variant:
            self.active_variant = self.connection.model_variant
        self.pending_variant = None

    def _on_model_switched(self, message: ModelSwitchedMessage) -> None:
        variant = message.model_name or self.pending_variant
        self.model_info = dict(message.model_info)
        if variant is None:
            logger.warning("model_switched received without a known variant")
            return

        logger.info(f"Model switched: {self.active_variant} -> {variant}")
        self.active_variant = variant
        self.pending_variant = None
        self.connection.model_variant = variant
