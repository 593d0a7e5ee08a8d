"""
Frame Producer
==============

Samples a video surface, crops to a centred region of interest and encodes
the result as a JPEG still.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Stateless and synchronous; cadence is driven by the StreamingSession
    - Never raises into the capture loop: "not ready" and encode failures
      both come back as None
    - Cropping keeps the centre crop_ratio of both axes (0.6 = centre 60%)
"""

import logging
from typing import Optional, Protocol, Tuple, Union

import cv2
import numpy as np

from signstream.errors import ResourceError


logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """
    Protocol for live video surfaces.

    Implementations report their intrinsic dimensions, which are (0, 0)
    until the surface is ready, and return the current BGR image.
    """

    @property
    def dimensions(self) -> Tuple[int, int]:
        """(width, height) of the surface, (0, 0) when not ready."""
        ...

    def read(self) -> np.ndarray:
        """
        Return the current image as a BGR array.

        Raises:
            ResourceError: If the surface cannot provide an image
        """
        ...


class CameraSource:
    """
    OpenCV camera (or stream URL) surface.

    The device is opened lazily on first use and released by release().

    Attributes:
        device: Camera index or stream URL passed to cv2.VideoCapture
    """

    def __init__(self, device: Union[int, str] = 0) -> None:
        self.device = device
        self._capture: Optional[cv2.VideoCapture] = None

    def _ensure_open(self) -> Optional[cv2.VideoCapture]:
        if self._capture is None:
            self._capture = cv2.VideoCapture(self.device)
            if self._capture.isOpened():
                logger.info(f"Camera opened: {self.device}")
            else:
                logger.warning(f"Camera not available: {self.device}")
        if not self._capture.isOpened():
            return None
        return self._capture

    @property
    def dimensions(self) -> Tuple[int, int]:
        capture = self._ensure_open()
        if capture is None:
            return (0, 0)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return (width, height)

    def read(self) -> np.ndarray:
        capture = self._ensure_open()
        if capture is None:
            raise ResourceError(f"Camera {self.device} is not open")
        ok, image = capture.read()
        if not ok or image is None:
            raise ResourceError(f"Camera {self.device} returned no image")
        return image

    def release(self) -> None:
        """Release the camera device."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera released: {self.device}")


class StillImageSource:
    """
    Fixed-image surface, used for test images and offline runs.

    Example:
        source = StillImageSource.from_file("hand.jpg")
        payload = FrameProducer().capture_frame(source)
    """

    def __init__(self, image: Optional[np.ndarray]) -> None:
        self.image = image

    @classmethod
    def from_file(cls, path: str) -> "StillImageSource":
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None:
            raise ResourceError(f"Could not read image: {path}")
        return cls(image)

    @property
    def dimensions(self) -> Tuple[int, int]:
        if self.image is None or self.image.ndim < 2:
            return (0, 0)
        height, width = self.image.shape[:2]
        return (width, height)

    def read(self) -> np.ndarray:
        if self.image is None:
            raise ResourceError("No image loaded")
        return self.image


def crop_center(image: np.ndarray, crop_ratio: float) -> np.ndarray:
    """
    Crop the centred crop_ratio region of both axes.

    Args:
        image: Image array (H, W[, C])
        crop_ratio: Fraction of width/height to keep, in (0, 1]

    Returns:
        Cropped view of the image
    """
    if not 0 < crop_ratio <= 1:
        raise ValueError("crop_ratio must be in (0, 1]")
    if crop_ratio == 1:
        return image

    height, width = image.shape[:2]
    crop_w = int(width * crop_ratio)
    crop_h = int(height * crop_ratio)
    x = (width - crop_w) // 2
    y = (height - crop_h) // 2
    return image[y:y + crop_h, x:x + crop_w]


def encode_jpeg(image: np.ndarray, quality: int) -> Optional[bytes]:
    """
    Encode an image as JPEG.

    Returns:
        JPEG bytes, or None if encoding failed
    """
    try:
        ok, buffer = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)]
        )
    except cv2.error as e:
        logger.warning(f"JPEG encode failed: {e}")
        return None
    if not ok:
        logger.warning("JPEG encode failed: cv2.imencode returned False")
        return None
    return buffer.tobytes()


class FrameProducer:
    """
    Produces one encoded still per call.

    Attributes:
        crop_ratio: Default centre crop applied when none is passed
        jpeg_quality: JPEG quality 1-100 (80-95 keeps payloads small)
    """

    def __init__(self, crop_ratio: float = 1.0, jpeg_quality: int = 80) -> None:
        if not 0 < crop_ratio <= 1:
            raise ValueError("crop_ratio must be in (0, 1]")
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [1, 100]")

        self.crop_ratio = crop_ratio
        self.jpeg_quality = jpeg_quality

    def capture_frame(
        self,
        source: FrameSource,
        crop_ratio: Optional[float] = None,
    ) -> Optional[bytes]:
        """
        Capture and encode one frame.

        Args:
            source: Video surface to sample
            crop_ratio: Override for the default crop

        Returns:
            JPEG bytes, or None if the source is not ready or encoding failed
        """
        ratio = self.crop_ratio if crop_ratio is None else crop_ratio

        try:
            width, height = source.dimensions
            if width <= 0 or height <= 0:
                logger.debug("Frame source not ready (zero dimensions)")
                return None

            image = source.read()
            cropped = crop_center(image, ratio)
            if cropped.size == 0:
                logger.debug("Crop produced an empty image")
                return None

            return encode_jpeg(cropped, self.jpeg_quality)

        except ResourceError as e:
            logger.debug(f"No frame: {e}")
            return None
        except Exception as e:
            logger.warning(f"Frame capture failed: {e}")
            return None
