"""
Result Correlator
=================

Decodes inbound messages and routes them by their "type" discriminator to
subscriber callbacks.

Design Rules:
    - Parse and validation failures become a ProtocolError reported to
      error subscribers; nothing raises out of on_message()
    - Unknown discriminators are logged and ignored (forward compatible)
    - Every parsed prediction is appended to a bounded, most-recent-first
      history, correct or not
    - Predictions are handled independently; they are not matched to the
      frames that produced them
    - A failing subscriber is logged and does not stop dispatch
"""

import json
import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Union

from pydantic import ValidationError

from signstream.errors import ProtocolError
from signstream.models.messages import (
    INBOUND_MESSAGE_TYPES,
    InboundMessage,
    PredictionMessage,
)
from signstream.models.state import PredictionResult


logger = logging.getLogger(__name__)


Handler = Callable[[InboundMessage], None]
ErrorHandler = Callable[[ProtocolError], None]


class CorrelatorMetrics:
    """Metrics for ResultCorrelator observability."""

    __slots__ = (
        "messages_dispatched",
        "predictions",
        "parse_errors",
        "unknown_messages",
    )

    def __init__(self) -> None:
        self.messages_dispatched: int = 0
        self.predictions: int = 0
        self.parse_errors: int = 0
        self.unknown_messages: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class ResultCorrelator:
    """
    Inbound message router.

    Attributes:
        history_size: Maximum number of predictions kept in history
        metrics: Dispatch counters

    Example:
        correlator = ResultCorrelator(history_size=8)
        correlator.subscribe("prediction", lambda msg: print(msg.letter))
        connection.on_message(correlator.on_message)
    """

    def __init__(self, history_size: int = 8) -> None:
        if history_size < 1:
            raise ValueError("history_size must be >= 1")

        self.history_size = history_size
        self._handlers: Dict[str, List[Handler]] = {}
        self._error_handlers: List[ErrorHandler] = []
        self._history: Deque[PredictionResult] = deque(maxlen=history_size)
        self.metrics = CorrelatorMetrics()

    @property
    def history(self) -> List[PredictionResult]:
        """Recent predictions, most recent first."""
        return list(self._history)

    @property
    def latest(self) -> Optional[PredictionResult]:
        return self._history[0] if self._history else None

    def clear_history(self) -> None:
        self._history.clear()

    def subscribe(self, message_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one message type.

        Returns:
            Callable that removes the handler again
        """
        if message_type not in INBOUND_MESSAGE_TYPES:
            raise ValueError(f"Unknown message type: {message_type}")

        handlers = self._handlers.setdefault(message_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscribe_errors(self, handler: ErrorHandler) -> None:
        """Register a handler for client-side protocol errors."""
        self._error_handlers.append(handler)

    def on_message(self, raw: Union[str, bytes]) -> Optional[InboundMessage]:
        """
        Parse one raw message and dispatch it.

        Args:
            raw: JSON text (bytes are decoded as UTF-8)

        Returns:
            The parsed message, or None if it was malformed or unknown
        """
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._protocol_error(f"Failed to parse server response: {e}", raw)
            return None

        if not isinstance(data, dict):
            self._protocol_error("Failed to parse server response: not an object", raw)
            return None

        message_type = data.get("type")
        schema = INBOUND_MESSAGE_TYPES.get(message_type) if isinstance(message_type, str) else None
        if schema is None:
            self.metrics.unknown_messages += 1
            logger.warning(f"Unknown message type: {message_type!r}")
            return None

        try:
            message = schema.model_validate(data)
        except ValidationError as e:
            self._protocol_error(
                f"Invalid {message_type} message: {e.error_count()} validation error(s)",
                raw,
            )
            return None

        if isinstance(message, PredictionMessage):
            self.metrics.predictions += 1
            self._history.appendleft(message.to_result())

        self._dispatch(message_type, message)
        return message

    def _dispatch(self, message_type: str, message: InboundMessage) -> None:
        self.metrics.messages_dispatched += 1
        for handler in list(self._handlers.get(message_type, ())):
            try:
                handler(message)
            except Exception:
                logger.exception(f"Handler for {message_type!r} failed")

    def _protocol_error(self, reason: str, raw: Union[str, bytes]) -> None:
        self.metrics.parse_errors += 1
        logger.error(reason)
        text = raw if isinstance(raw, str) else repr(raw)
        error = ProtocolError(reason, raw=text[:200])
        for handler in list(self._error_handlers):
            try:
                handler(error)
            except Exception:
                logger.exception("Protocol error handler failed")
