"""
Streaming Session
=================

Pumps frames from a FrameSource through the FrameProducer onto the
connection while the session is live.

Flow:
    start(target)  -> capture task: every capture_interval seconds
                      capture -> Frame(seq) -> {"type": "frame", ...}
    stop()         -> cancel task; with a target label, send
                      {"type": "stop"} then {"type": "analyze", "target_word": ...}

Design Rules:
    - start() requires a connected channel (raises NotConnectedError)
    - start() while live is a no-op
    - Frames go out strictly in capture order, one send at a time
    - Capture (camera read + JPEG encode) runs off the event loop
    - Each send re-checks the connection; a dropped connection ends the
      loop quietly and discards the burst, so a later stop() sends nothing
    - Capture failures are logged and skipped, never raised out of the task
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from signstream.errors import NotConnectedError
from signstream.models.messages import AnalyzeRequest, StopRequest
from signstream.models.state import ConnectionState
from signstream.stream.capture import FrameProducer, FrameSource
from signstream.stream.connection import ConnectionManager
from signstream.stream.frame import Frame


logger = logging.getLogger(__name__)


class StreamingSession:
    """
    Capture loop bound to one connection and one frame source.

    Attributes:
        capture_interval: Seconds between captures (0.15 words, 0.4 letters)
        analyze_delay: Seconds between the stop and analyze messages
        frames_sent: Frames written since the last start()

    Example:
        session = StreamingSession(connection, FrameProducer(0.6, 80), camera)
        await session.start("Hello")
        ...
        await session.stop()   # server replies with final_result
    """

    def __init__(
        self,
        connection: ConnectionManager,
        producer: FrameProducer,
        source: FrameSource,
        capture_interval: float = 0.15,
        analyze_delay: float = 0.5,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        offload: Optional[Callable[..., Awaitable[Any]]] = None,
    ) -> None:
        if capture_interval <= 0:
            raise ValueError("capture_interval must be positive")
        if analyze_delay < 0:
            raise ValueError("analyze_delay must be >= 0")

        self.connection = connection
        self.producer = producer
        self.source = source
        self.capture_interval = capture_interval
        self.analyze_delay = analyze_delay
        self._sleep = sleep or asyncio.sleep
        self._offload = offload or asyncio.to_thread

        self._task: Optional[asyncio.Task] = None
        self._target_label: Optional[str] = None
        self._generation: Optional[int] = None
        self._frames_sent: int = 0

    @property
    def is_live(self) -> bool:
        """Whether the capture loop is running."""
        return self._task is not None and not self._task.done()

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def target_label(self) -> Optional[str]:
        return self._target_label

    async def start(self, target_label: Optional[str] = None) -> None:
        """
        Start pumping frames.

        Args:
            target_label: Label the burst is scored against on stop()

        Raises:
            NotConnectedError: If the connection is not open
        """
        if self.is_live:
            logger.debug("start() ignored, session already live")
            return
        if self.connection.state is not ConnectionState.CONNECTED:
            raise NotConnectedError(
                f"Cannot start session, connection is {self.connection.state.value}"
            )

        self._target_label = target_label
        self._generation = self.connection.generation
        self._frames_sent = 0
        self._task = asyncio.create_task(self._capture_loop(), name="signstream_capture")
        logger.info(
            f"Session started (interval={self.capture_interval * 1000:.0f}ms, "
            f"target={target_label!r})"
        )

    async def stop(self, analyze: bool = True) -> None:
        """
        Stop pumping frames and request the aggregate result.

        Safe to call at any point, including when not live.

        Args:
            analyze: Send stop/analyze when a target label was set
        """
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        target = self._target_label
        generation = self._generation
        self._target_label = None
        self._generation = None
        logger.info(f"Session stopped after {self._frames_sent} frames")

        if target is None or not analyze:
            return
        if generation != self.connection.generation:
            logger.info(f"Analyze for {target!r} skipped, connection changed during the burst")
            return
        if not await self.connection.send(StopRequest()):
            logger.warning("Could not send stop, connection not open")
            return
        if self.analyze_delay:
            await self._sleep(self.analyze_delay)
        if await self.connection.send(AnalyzeRequest(target_word=target)):
            logger.info(f"Analyzing {self._frames_sent} frames for: {target}")
        else:
            logger.warning("Could not send analyze, connection not open")

    def _burst_lost(self) -> bool:
        return (
            self.connection.state is not ConnectionState.CONNECTED
            or self.connection.generation != self._generation
        )

    async def _capture_loop(self) -> None:
        while True:
            await self._sleep(self.capture_interval)

            if self._burst_lost():
                break

            try:
                payload = await self._offload(self.producer.capture_frame, self.source)
            except Exception as e:
                logger.warning(f"Capture failed: {e}")
                continue
            if payload is None:
                continue

            # The connection may have changed while the capture ran
            if self._burst_lost():
                break

            frame = Frame(
                sequence_number=self.connection.next_frame_sequence(),
                payload=payload,
                captured_at=time.time(),
            )
            if await self.connection.send(frame.to_request()):
                self._frames_sent += 1
                logger.debug(f"Sent {frame!r}")

        logger.info(f"Connection lost, burst for {self._target_label!r} discarded")
        self._target_label = None
