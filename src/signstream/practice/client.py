"""
Practice Client
===============

Facade that wires the streaming components for one practice mode.

    FrameSource -> FrameProducer -> StreamingSession -> ConnectionManager
                                                            |
    SessionScorer <- PracticeClient <- ResultCorrelator <---+
                                    <- ModelSelector

Modes:
    words:   150ms capture, full frame, scored by the final_result the
             server returns after stop/analyze; optionally disconnects once
             the result arrives
    letters: 400ms capture, centre 60% crop; can additionally score every
             incremental prediction against the target letter

Design Rules:
    - The final aggregate result is the authoritative score
    - last_error always holds the most recent human-readable failure
      (transport, protocol or server-reported)
    - status() is a cheap snapshot for the host UI / control API
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set

from signstream.config import ModeConfig, Settings
from signstream.errors import ApplicationError, SignStreamError
from signstream.models.messages import (
    AggregateResult,
    ConnectedMessage,
    ErrorMessage,
    FinalResultMessage,
    FrameReceivedMessage,
    ModelSwitchedMessage,
    PredictionMessage,
)
from signstream.models.state import (
    ClientStatus,
    ConnectionState,
    PredictionResult,
    SessionStats,
)
from signstream.practice.scorer import SessionScorer
from signstream.stream.capture import FrameProducer, FrameSource
from signstream.stream.connection import ConnectionManager, Connector, Sleep
from signstream.stream.correlator import ResultCorrelator
from signstream.stream.endpoint import join_endpoint
from signstream.stream.model_selector import ModelSelector
from signstream.stream.reconnect import ReconnectPolicy
from signstream.stream.session import StreamingSession


logger = logging.getLogger(__name__)


ErrorCallback = Callable[[SignStreamError], None]


class PracticeClient:
    """
    One practice session against the inference service.

    Attributes:
        mode: Mode name ("words" or "letters")
        connection: ConnectionManager
        correlator: ResultCorrelator (subscribe here for raw events)
        selector: ModelSelector
        session: StreamingSession
        scorer: SessionScorer

    Example:
        client = PracticeClient.from_settings(settings, CameraSource(0))
        await client.connect()
        await client.start("Hello")
        await asyncio.sleep(3)
        await client.stop()
        # final_result arrives asynchronously, see client.stats
    """

    def __init__(
        self,
        endpoint: str,
        source: FrameSource,
        mode_config: ModeConfig,
        mode: str = "words",
        model_variant: Optional[str] = None,
        category: Optional[str] = None,
        keepalive_interval: float = 30.0,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        open_timeout: float = 10.0,
        history_size: int = 8,
        result_history_size: int = 10,
        analyze_delay: float = 0.5,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleep] = None,
        offload: Optional[Callable[..., Awaitable[Any]]] = None,
    ) -> None:
        self.mode = mode
        self.mode_config = mode_config
        self.endpoint = endpoint
        self.category = category

        self.connection = ConnectionManager(
            keepalive_interval=keepalive_interval,
            reconnect_policy=reconnect_policy,
            open_timeout=open_timeout,
            connector=connector,
            sleep=sleep,
        )
        self.correlator = ResultCorrelator(history_size=history_size)
        self.selector = ModelSelector(
            self.connection,
            self.correlator,
            model_variant or mode_config.default_model,
        )
        self.session = StreamingSession(
            self.connection,
            FrameProducer(
                crop_ratio=mode_config.crop_ratio,
                jpeg_quality=mode_config.jpeg_quality,
            ),
            source,
            capture_interval=mode_config.capture_interval_ms / 1000.0,
            analyze_delay=analyze_delay,
            sleep=sleep,
            offload=offload,
        )
        self.scorer = SessionScorer()

        self._last_error: Optional[str] = None
        self._current_prediction: Optional[PredictionResult] = None
        self._server_frame_count: int = 0
        self._last_target: Optional[str] = None
        self._results: Deque[AggregateResult] = deque(maxlen=result_history_size)
        self._error_callbacks: List[ErrorCallback] = []
        self._background: Set[asyncio.Task] = set()

        self.connection.on_message(self.correlator.on_message)
        self.connection.on_error(self._on_error)
        self.connection.on_state_change(self._on_state_change)
        self.correlator.subscribe_errors(self._on_error)
        self.correlator.subscribe("connected", self._on_connected)
        self.correlator.subscribe("prediction", self._on_prediction)
        self.correlator.subscribe("final_result", self._on_final_result)
        self.correlator.subscribe("model_switched", self._on_model_switched)
        self.correlator.subscribe("error", self._on_server_error)
        self.correlator.subscribe("frame_received", self._on_frame_received)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        source: FrameSource,
        mode: Optional[str] = None,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleep] = None,
    ) -> "PracticeClient":
        """Build a client for the given (or configured) mode."""
        mode_name = mode or settings.practice.mode
        mode_config = settings.mode_config(mode_name)
        return cls(
            endpoint=join_endpoint(settings.server.base_url, mode_config.path),
            source=source,
            mode_config=mode_config,
            mode=mode_name,
            model_variant=settings.model_variant(mode_name),
            category=settings.server.category,
            keepalive_interval=settings.connection.keepalive_interval_seconds,
            reconnect_policy=settings.connection.reconnect_policy(),
            open_timeout=settings.connection.open_timeout_seconds,
            history_size=settings.practice.history_size,
            result_history_size=settings.practice.result_history_size,
            analyze_delay=settings.practice.analyze_delay_seconds,
            connector=connector,
            sleep=sleep,
        )

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def stats(self) -> SessionStats:
        return self.scorer.stats

    @property
    def results(self) -> List[AggregateResult]:
        """Recent final results, most recent first."""
        return list(self._results)

    @property
    def current_prediction(self) -> Optional[PredictionResult]:
        return self._current_prediction

    def status(self) -> ClientStatus:
        """Snapshot of connection, session, model and score state."""
        return ClientStatus(
            mode=self.mode,
            connection_state=self.connection.state,
            last_error=self._last_error,
            is_live=self.session.is_live,
            target_label=self.session.target_label,
            frames_sent=self.session.frames_sent,
            server_frame_count=self._server_frame_count,
            active_model=self.selector.active_variant,
            pending_model=self.selector.pending_variant,
            model_info=self.selector.model_info,
            current_prediction=self._current_prediction,
            recent_predictions=self.correlator.history,
            stats=self.scorer.stats,
            reconnect_count=self.connection.metrics.reconnect_count,
        )

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback for every reported error."""
        self._error_callbacks.append(callback)

    # -------------------------------------------------------------------------
    # Controls
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect with the active model variant."""
        await self.connection.connect(
            self.endpoint,
            self.selector.active_variant,
            self.category,
        )

    async def disconnect(self, reason: str = "Manual disconnect") -> None:
        """Stop capturing (without analyze) and close the connection."""
        await self.session.stop(analyze=False)
        await self.connection.disconnect(reason)

    async def start(self, target_label: Optional[str] = None) -> None:
        """
        Start a capture burst.

        Raises:
            NotConnectedError: If the connection is not open
        """
        await self.session.start(target_label)
        self._server_frame_count = 0
        self._last_target = self.session.target_label

    async def stop(self) -> None:
        """Stop the burst; with a target the server returns a final result."""
        await self.session.stop()

    async def switch_model(self, variant: str) -> bool:
        return await self.selector.switch_model(variant)

    def reset_stats(self) -> None:
        self.scorer.reset()

    def clear_error(self) -> None:
        self._last_error = None

    async def close(self) -> None:
        """Tear down session, connection and background tasks."""
        await self.session.stop(analyze=False)
        await self.connection.close()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def _on_state_change(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTED:
            self._last_error = None

    def _on_error(self, error: SignStreamError) -> None:
        self._last_error = str(error)
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception:
                logger.exception("Error callback failed")

    def _on_connected(self, message: ConnectedMessage) -> None:
        logger.info(f"Connection confirmed by server: {message.model_info}")

    def _on_prediction(self, message: PredictionMessage) -> None:
        result = message.to_result()
        self._current_prediction = result

        target = self.session.target_label
        if self.mode_config.score_incremental and target:
            correct = self.scorer.record(result, target)
            logger.debug(f"Scored {result.label!r} vs {target!r}: {correct}")

    def _on_final_result(self, message: FinalResultMessage) -> None:
        result = message.result
        self._results.appendleft(result)

        target = result.target_word or self._last_target
        if target:
            self.scorer.record_outcome(result.is_top_4_correct)
        top = result.top_prediction
        logger.info(
            f"Final result for {target!r}: "
            f"top={top.word if top else None!r}, correct={result.is_top_4_correct}"
        )

        if self.mode_config.disconnect_after_result:
            self._spawn(self.connection.disconnect("Result received"))

    def _on_model_switched(self, message: ModelSwitchedMessage) -> None:
        logger.info(f"Active model: {self.selector.active_variant}")

    def _on_server_error(self, message: ErrorMessage) -> None:
        logger.warning(f"Server error: {message.message}")
        self._on_error(ApplicationError(message.message))

    def _on_frame_received(self, message: FrameReceivedMessage) -> None:
        self._server_frame_count = message.frame_count

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
