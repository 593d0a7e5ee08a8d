"""
signstream
==========

Real-time sign-recognition streaming client.

Turns a live camera feed into a continuous stream of inference requests
against a remote model service over a WebSocket, and turns the asynchronous
reply stream into predictions, final results and practice scores.

Components:
    - stream: connection lifecycle, frame capture, result routing, model switching
    - practice: session scoring and the PracticeClient facade
    - models: wire messages and client state
    - main: FastAPI control API hosting one PracticeClient

Example:
    from signstream.config import settings
    from signstream.practice import PracticeClient
    from signstream.stream import CameraSource

    client = PracticeClient.from_settings(settings, CameraSource(0))
    await client.connect()
    await client.start("Hello")
"""

__version__ = "0.1.0"
__author__ = "signstream contributors"

__all__ = [
    "__version__",
]
