"""
Connection Manager
==================

Owns the lifecycle of the one duplex WebSocket connection to the inference
service.

This module provides the ConnectionManager class which:
    - Opens the channel at endpoint?model_type=<variant>[&category=...]
    - Tracks ConnectionState (disconnected/connecting/connected/closing)
    - Sends an application-level {"type": "ping"} every keepalive_interval
      while connected
    - Reconnects after abnormal closures (close code != 1000) following
      its ReconnectPolicy
    - Hands raw inbound messages to message listeners
    - Hands out per-connection frame sequence numbers

Design Rules:
    - connect() while connecting/connected is a no-op
    - disconnect() is the only path that suppresses auto-reconnect
    - Transport errors are reported to error listeners and always end in
      DISCONNECTED
    - Nothing raises out of the reader, keep-alive or reconnect tasks
    - Every task has one owner and is cancelled on every exit path
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed

from signstream.errors import SignStreamError, TransportError
from signstream.models.messages import PingRequest
from signstream.models.state import ConnectionState
from signstream.stream.endpoint import build_stream_url
from signstream.stream.reconnect import ReconnectPolicy


logger = logging.getLogger(__name__)


NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011
ABNORMAL_CLOSURE = 1006

Connector = Callable[[str], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]
StateListener = Callable[[ConnectionState], None]
ErrorListener = Callable[[SignStreamError], None]
MessageListener = Callable[[str], None]


async def open_websocket(url: str) -> Any:
    """Default connector: open a client WebSocket with the websockets library."""
    # Keep-alive is sent as application-level ping messages.
    return await websockets.connect(
        url,
        ping_interval=None,
        close_timeout=5,
    )


class ConnectionMetrics:
    """Metrics for ConnectionManager observability."""

    __slots__ = (
        "messages_sent",
        "messages_received",
        "pings_sent",
        "send_failures",
        "connect_failures",
        "reconnect_count",
    )

    def __init__(self) -> None:
        self.messages_sent: int = 0
        self.messages_received: int = 0
        self.pings_sent: int = 0
        self.send_failures: int = 0
        self.connect_failures: int = 0
        self.reconnect_count: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class ConnectionManager:
    """
    Duplex channel owner with keep-alive and automatic reconnect.

    Attributes:
        keepalive_interval: Seconds between pings while connected
        reconnect_policy: Delay/attempt policy after abnormal closures
        open_timeout: Seconds allowed for the opening handshake
        metrics: Operational counters

    Example:
        manager = ConnectionManager(keepalive_interval=30.0)
        manager.on_message(correlator.on_message)

        await manager.connect("ws://localhost:8000/practice/live-predict", "mini")
        await manager.send(StopRequest())
        await manager.disconnect()
    """

    def __init__(
        self,
        keepalive_interval: float = 30.0,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        open_timeout: float = 10.0,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        """
        Initialize connection manager.

        Args:
            keepalive_interval: Seconds between keep-alive pings
            reconnect_policy: Reconnect policy (default: fixed 3s, unlimited)
            open_timeout: Handshake timeout in seconds
            connector: Coroutine factory url -> websocket (default: websockets)
            sleep: Timer primitive (default: asyncio.sleep)
        """
        if keepalive_interval <= 0:
            raise ValueError("keepalive_interval must be positive")

        self.keepalive_interval = keepalive_interval
        self.reconnect_policy = reconnect_policy or ReconnectPolicy()
        self.open_timeout = open_timeout
        self._connector: Connector = connector or open_websocket
        self._sleep: Sleep = sleep or asyncio.sleep

        # State
        self._state: ConnectionState = ConnectionState.DISCONNECTED
        self._websocket: Optional[Any] = None
        self._endpoint: Optional[str] = None
        self._model_variant: Optional[str] = None
        self._category: Optional[str] = None
        self._user_closed: bool = False
        self._generation: int = 0
        self._frame_sequence: int = 0
        self._reconnect_attempt: int = 0
        self._last_error: Optional[str] = None

        # Owned tasks
        self._reader_task: Optional[asyncio.Task] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        # Listeners
        self._state_listeners: List[StateListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._message_listeners: List[MessageListener] = []

        self.metrics = ConnectionMetrics()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the channel is open."""
        return self._state is ConnectionState.CONNECTED

    @property
    def last_error(self) -> Optional[str]:
        """Human-readable reason of the most recent transport error."""
        return self._last_error

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    @property
    def category(self) -> Optional[str]:
        return self._category

    @property
    def model_variant(self) -> Optional[str]:
        """Model variant used for the next (re)connect."""
        return self._model_variant

    @model_variant.setter
    def model_variant(self, variant: str) -> None:
        self._model_variant = variant

    @property
    def generation(self) -> int:
        """Identifier of the current connection attempt, bumped on every open and close."""
        return self._generation

    @property
    def frame_sequence(self) -> int:
        """Next frame sequence number on the current connection."""
        return self._frame_sequence

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def on_message(self, listener: MessageListener) -> None:
        self._message_listeners.append(listener)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def connect(
        self,
        endpoint: str,
        model_variant: str,
        category: Optional[str] = None,
    ) -> None:
        """
        Open the channel unless one is already opening or open.

        Completion or failure is reported through state and error
        listeners; this method never raises transport errors.

        Args:
            endpoint: ws(s) endpoint without query string
            model_variant: Model requested on connect
            category: Optional sign category query parameter
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.debug(f"connect() ignored, already {self._state.value}")
            return
        if self._state is ConnectionState.CLOSING:
            logger.warning("connect() ignored while the connection is closing")
            return

        self._endpoint = endpoint
        self._model_variant = model_variant
        self._category = category
        self._user_closed = False
        self._reconnect_attempt = 0
        _cancel_nowait(self._reconnect_task)
        self._reconnect_task = None

        await self._open()

    async def disconnect(self, reason: str = "Manual disconnect") -> None:
        """
        Close the channel with a normal status and stop all timers.

        Suppresses auto-reconnect until the next connect().
        """
        self._user_closed = True
        self._generation += 1

        reconnect_task = self._reconnect_task
        keepalive_task = self._keepalive_task
        reader_task = self._reader_task
        websocket = self._websocket
        self._reconnect_task = None
        self._keepalive_task = None
        self._reader_task = None
        self._websocket = None

        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            self._set_state(ConnectionState.CLOSING)

        await _cancel(reconnect_task)
        await _cancel(keepalive_task)
        if websocket is not None:
            await _close_quietly(websocket, NORMAL_CLOSURE, reason)
        await _cancel(reader_task)

        self._set_state(ConnectionState.DISCONNECTED)
        logger.info(f"Disconnected: {reason}")

    async def close(self) -> None:
        """Teardown alias for disconnect()."""
        await self.disconnect("Client closed")

    async def send(self, message: BaseModel) -> bool:
        """
        Write one message if the channel is open.

        Args:
            message: Outbound message model

        Returns:
            True if written, False if not connected or the write failed
        """
        websocket = self._websocket
        if self._state is not ConnectionState.CONNECTED or websocket is None:
            logger.debug(f"Send skipped, connection is {self._state.value}")
            return False

        try:
            await websocket.send(message.model_dump_json())
        except ConnectionClosed as e:
            # The reader observes the same closure and handles it
            self.metrics.send_failures += 1
            logger.warning(f"Send failed, connection closed: {e}")
            return False
        except Exception as e:
            self.metrics.send_failures += 1
            self._report_error(TransportError(f"WebSocket send failed: {e}"))
            self._handle_closed(websocket, INTERNAL_ERROR)
            await _close_quietly(websocket, INTERNAL_ERROR, "Send failed")
            return False

        self.metrics.messages_sent += 1
        return True

    def next_frame_sequence(self) -> int:
        """Hand out the next frame sequence number on this connection."""
        sequence = self._frame_sequence
        self._frame_sequence += 1
        return sequence

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _open(self) -> None:
        """Run one opening handshake and start the reader and keep-alive."""
        self._generation += 1
        generation = self._generation
        self._frame_sequence = 0
        self._set_state(ConnectionState.CONNECTING)

        url = build_stream_url(self._endpoint, self._model_variant, self._category)
        logger.info(f"Connecting to {url}")

        try:
            websocket = await asyncio.wait_for(
                self._connector(url),
                timeout=self.open_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                return
            self.metrics.connect_failures += 1
            self._set_state(ConnectionState.DISCONNECTED)
            self._report_error(TransportError(f"WebSocket connection failed: {e}"))
            self._schedule_reconnect()
            return

        if generation != self._generation:
            # disconnect() ran during the handshake
            await _close_quietly(websocket, NORMAL_CLOSURE, "Superseded")
            return

        self._websocket = websocket
        self._reconnect_attempt = 0
        self._set_state(ConnectionState.CONNECTED)
        logger.info(f"Connected: {url}")

        self._reader_task = asyncio.create_task(
            self._read_loop(websocket),
            name="signstream_reader",
        )
        self._keepalive_task = asyncio.create_task(
            self._keepalive_loop(websocket),
            name="signstream_keepalive",
        )

    async def _read_loop(self, websocket: Any) -> None:
        """Receive until the channel closes, then hand over to _handle_closed."""
        close_code = ABNORMAL_CLOSURE
        try:
            while True:
                raw = await websocket.recv()
                self.metrics.messages_received += 1
                self._emit_message(raw)
        except ConnectionClosed as e:
            close_code = _close_code(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report_error(TransportError(f"WebSocket receive failed: {e}"))

        self._handle_closed(websocket, close_code)

    async def _keepalive_loop(self, websocket: Any) -> None:
        """Ping every keepalive_interval while this websocket is current."""
        while True:
            await self._sleep(self.keepalive_interval)
            if self._state is not ConnectionState.CONNECTED or websocket is not self._websocket:
                return
            if await self.send(PingRequest()):
                self.metrics.pings_sent += 1
                logger.debug("Keep-alive ping sent")

    def _handle_closed(self, websocket: Any, close_code: int) -> None:
        """Tear down a closed channel and decide whether to reconnect."""
        if websocket is not self._websocket:
            # Stale notification for a channel we no longer own
            return

        self._websocket = None
        _cancel_nowait(self._keepalive_task)
        _cancel_nowait(self._reader_task)
        self._keepalive_task = None
        self._reader_task = None
        self._set_state(ConnectionState.DISCONNECTED)

        if self._user_closed:
            return
        if close_code == NORMAL_CLOSURE:
            logger.info("Connection closed normally")
            return

        logger.warning(f"Connection closed abnormally (code={close_code})")
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Schedule exactly one reconnect attempt, if allowed."""
        if self._user_closed:
            return
        if self.reconnect_pending:
            return

        attempt = self._reconnect_attempt + 1
        if not self.reconnect_policy.allows(attempt):
            logger.error(
                f"Max reconnect attempts ({self.reconnect_policy.max_attempts}) exceeded"
            )
            self._report_error(TransportError("Max reconnect attempts exceeded"))
            return

        self._reconnect_attempt = attempt
        delay = self.reconnect_policy.delay_for(attempt)
        logger.info(f"Reconnecting in {delay:.1f}s (attempt {attempt})")

        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay),
            name="signstream_reconnect",
        )

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if self._user_closed or self._state is not ConnectionState.DISCONNECTED:
            return
        self.metrics.reconnect_count += 1
        await self._open()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(f"Connection state: {previous.value} -> {state.value}")
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")

    def _report_error(self, error: SignStreamError) -> None:
        self._last_error = str(error)
        logger.error(str(error))
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed")

    def _emit_message(self, raw: str) -> None:
        for listener in list(self._message_listeners):
            try:
                listener(raw)
            except Exception:
                logger.exception("Message listener failed")


# =============================================================================
# Helpers
# =============================================================================

def _close_code(exc: ConnectionClosed) -> int:
    """Close code received from the peer, 1006 when none was received."""
    if exc.rcvd is not None:
        return exc.rcvd.code
    return ABNORMAL_CLOSURE


async def _close_quietly(websocket: Any, code: int, reason: str) -> None:
    try:
        await websocket.close(code=code, reason=reason)
    except Exception as e:
        logger.debug(f"Error while closing WebSocket: {e}")


def _cancel_nowait(task: Optional[asyncio.Task]) -> None:
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()


async def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
