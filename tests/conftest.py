"""
Test Configuration
==================

Pytest fixtures and test doubles for signstream.

    FakeClock      - simulated time for every timer (pass clock.sleep)
    run_inline     - capture offload that stays on the loop (pass as offload)
    FakeWebSocket  - in-memory duplex channel recording sent messages
    FakeConnector  - connector handing out FakeWebSockets
"""

import asyncio
import heapq
import json
from typing import Any, List, Optional

import numpy as np
import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from signstream.stream.capture import StillImageSource


ENDPOINT = "ws://localhost:8000/practice/live-predict"


async def settle(rounds: int = 50) -> None:
    """Let every ready task run until the loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def run_inline(func, *args):
    """Offload stand-in that runs the blocking call on the loop, in simulated time."""
    return func(*args)


class FakeClock:
    """
    Simulated clock for injectable sleep functions.

    Sleepers wake in deadline order when advance() moves time past them;
    ready tasks are drained between wake-ups.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: List[Any] = []
        self._counter = 0

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._counter += 1
        heapq.heappush(self._sleepers, (self.now + delay, self._counter, future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self.now = deadline
            future.set_result(None)
            await settle()
        self.now = target
        await settle()


class FakeWebSocket:
    """In-memory client WebSocket."""

    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.closed = False
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.send_error: Optional[Exception] = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(json.loads(data))

    async def recv(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        frame = Close(code, reason)
        self._inbox.put_nowait(ConnectionClosedOK(frame, frame, rcvd_then_sent=False))

    # Server side helpers

    def push(self, message: dict) -> None:
        self._inbox.put_nowait(json.dumps(message))

    def push_raw(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def remote_close(self, code: int, reason: str = "") -> None:
        """Server closes the channel with a close frame."""
        self.closed = True
        frame = Close(code, reason)
        if code == 1000:
            self._inbox.put_nowait(ConnectionClosedOK(frame, frame, rcvd_then_sent=True))
        else:
            self._inbox.put_nowait(ConnectionClosedError(frame, None))

    def drop(self) -> None:
        """Channel lost without a close frame (1006)."""
        self.closed = True
        self._inbox.put_nowait(ConnectionClosedError(None, None))

    def sent_types(self) -> List[str]:
        return [message["type"] for message in self.sent]

    def sent_of(self, message_type: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == message_type]


class FakeConnector:
    """Connector recording URLs; fails the next `failures` attempts."""

    def __init__(self) -> None:
        self.urls: List[str] = []
        self.sockets: List[FakeWebSocket] = []
        self.failures = 0

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.failures:
            self.failures -= 1
            raise OSError("Connection refused")
        websocket = FakeWebSocket()
        self.sockets.append(websocket)
        return websocket

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


@pytest.fixture
def clock():
    """Simulated clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def connector():
    """Connector handing out in-memory WebSockets."""
    return FakeConnector()


@pytest.fixture
def sample_image():
    """Provide a 640x480 BGR test image with a horizontal gradient."""
    gradient = np.tile(np.linspace(0, 255, 640, dtype=np.uint8), (480, 1))
    return np.dstack([gradient, gradient[::-1], np.full_like(gradient, 96)])


@pytest.fixture
def image_source(sample_image):
    """Provide a ready frame source."""
    return StillImageSource(sample_image)


@pytest.fixture
def sample_prediction_message():
    """Provide a sample incremental prediction message."""
    return {
        "type": "prediction",
        "letter": "Alif",
        "confidence": 0.93,
        "timestamp": 1707321234.5,
    }


@pytest.fixture
def sample_final_result_message():
    """Provide a sample final_result message for target "Hello"."""
    return {
        "type": "final_result",
        "result": {
            "target_word": "Hello",
            "predictions": [
                {"word": "Hello", "confidence": 0.82, "rank": 1},
                {"word": "Help", "confidence": 0.09, "rank": 2},
                {"word": "Thanks", "confidence": 0.05, "rank": 3},
                {"word": "Yes", "confidence": 0.02, "rank": 4},
            ],
            "is_top_4_correct": True,
            "model_used": "mini",
        },
    }
