#!/usr/bin/env python3
"""
Live Practice Session Script
============================

Standalone script to exercise the streaming client against a running
inference service.

This script:
    1. Connects to the practice stream for the chosen mode
    2. Streams camera (or still image) frames for a fixed duration
    3. Stops the burst and waits for the final result
    4. Reports the session summary

Prerequisites:
    - The inference service must be running at the configured URL
    - Install the package: pip install -e .

Usage:
    python scripts/live_session.py --target Hello --duration 3
    python scripts/live_session.py --mode letters --model ps_pro --target Alif
    python scripts/live_session.py --image hand.jpg --target Hello
"""

import argparse
import asyncio
import logging
import os
import sys
import time

from signstream.config import load_config
from signstream.models.state import ConnectionState
from signstream.practice import PracticeClient
from signstream.stream import CameraSource, StillImageSource


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def wait_for(predicate, timeout: float, poll: float = 0.1) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(poll)
    return predicate()


async def run_session(
    base_url: str,
    mode: str,
    model: str,
    target: str,
    duration: float,
    camera: int,
    image: str,
    result_timeout: float,
) -> dict:
    """
    Run one practice burst.

    Args:
        base_url: http(s) or ws(s) address of the inference service
        mode: "words" or "letters"
        model: Model variant (None for the mode default)
        target: Label to practice
        duration: Seconds of streaming
        camera: OpenCV camera index
        image: Still image path used instead of the camera
        result_timeout: Seconds to wait for the final result

    Returns:
        Final summary dict
    """
    settings = load_config()
    settings.server.base_url = base_url
    settings.practice.mode = mode
    if model:
        settings.practice.model = model
    # Keep the connection after the result so the summary can be read
    settings.mode_config(mode).disconnect_after_result = False

    source = StillImageSource.from_file(image) if image else CameraSource(camera)
    client = PracticeClient.from_settings(settings, source)

    logger.info("=" * 60)
    logger.info("Live Practice Session")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {client.endpoint}")
    logger.info(f"Mode: {mode}")
    logger.info(f"Model: {client.selector.active_variant}")
    logger.info(f"Target: {target}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    start_time = time.time()
    got_result = False
    frames_sent = 0

    try:
        await client.connect()
        connected = await wait_for(
            lambda: client.state is ConnectionState.CONNECTED,
            timeout=10.0,
        )
        if not connected:
            logger.error(f"Could not connect: {client.last_error}")
            return {"connected": False, "error": client.last_error}

        await client.start(target)
        await asyncio.sleep(duration)
        frames_sent = client.session.frames_sent
        await client.stop()

        got_result = await wait_for(lambda: bool(client.results), timeout=result_timeout)

    except KeyboardInterrupt:
        logger.info("Session interrupted by user")
        frames_sent = client.session.frames_sent
    finally:
        await client.close()
        if isinstance(source, CameraSource):
            source.release()

    total_time = time.time() - start_time
    stats = client.stats
    metrics = client.connection.metrics

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames sent: {frames_sent}")
    logger.info(f"Predictions received: {client.correlator.metrics.predictions}")
    logger.info(f"Reconnections: {metrics.reconnect_count}")
    logger.info(f"Send failures: {metrics.send_failures}")
    logger.info(f"Parse errors: {client.correlator.metrics.parse_errors}")
    if got_result:
        result = client.results[0]
        for prediction in result.predictions:
            logger.info(f"  #{prediction.rank} {prediction.word} ({prediction.confidence:.2f})")
        logger.info(f"Top-4 correct: {result.is_top_4_correct}")
    else:
        logger.warning("No final result received")
    logger.info(
        f"Score: {stats.correct}/{stats.total} "
        f"(streak {stats.current_streak}, best {stats.best_streak})"
    )
    if client.last_error:
        logger.info(f"Last error: {client.last_error}")
    logger.info("=" * 60)

    return {
        "connected": True,
        "duration": total_time,
        "frames_sent": frames_sent,
        "got_result": got_result,
        "stats": stats.model_dump(),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Stream one practice burst to the inference service"
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=os.environ.get("SIGNSTREAM_BASE_URL", "http://localhost:8000"),
        help="Base address of the inference service",
    )
    parser.add_argument(
        "--mode",
        choices=["words", "letters"],
        default="words",
        help="Practice mode (default: words)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model variant (default: the mode's default model)",
    )
    parser.add_argument(
        "--target",
        type=str,
        required=True,
        help="Label to practice",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=3.0,
        help="Seconds of streaming (default: 3)",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=0,
        help="OpenCV camera index (default: 0)",
    )
    parser.add_argument(
        "--image",
        type=str,
        default=None,
        help="Stream a still image instead of the camera",
    )
    parser.add_argument(
        "--result-timeout",
        type=float,
        default=15.0,
        help="Seconds to wait for the final result (default: 15)",
    )

    args = parser.parse_args()

    result = asyncio.run(run_session(
        base_url=args.base_url,
        mode=args.mode,
        model=args.model,
        target=args.target,
        duration=args.duration,
        camera=args.camera,
        image=args.image,
        result_timeout=args.result_timeout,
    ))

    sys.exit(0 if result.get("got_result") else 1)


if __name__ == "__main__":
    main()
