"""
Camera frame source (OpenCV).
"""

import logging
import platform
from typing import Optional, Union

import cv2
import numpy as np

logger = logging.getLogger("focus.camera")


def _open_camera(source: Union[int, str] = 0) -> cv2.VideoCapture:
    """Try multiple backends to open camera reliably (especially on Windows)"""
    if isinstance(source, str):
        return cv2.VideoCapture(source)

    if platform.system() == "Windows":
        backends = [
            (cv2.CAP_DSHOW, "DirectShow"),
            (cv2.CAP_MSMF, "MSMF"),
            (cv2.CAP_ANY, "Any"),
        ]
    else:
        backends = [
            (cv2.CAP_V4L2, "V4L2"),
            (cv2.CAP_ANY, "Any"),
        ]

    for backend, name in backends:
        logger.info(f"Trying camera {source} with backend {name} ({backend})")
        cap = cv2.VideoCapture(source, backend)
        if cap.isOpened():
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            logger.info(f"Camera opened successfully with {name}")
            return cap
        cap.release()
        logger.warning(f"Failed to open camera with {name}")

    logger.info(f"Trying plain VideoCapture({source}) as final fallback")
    return cv2.VideoCapture(source)


class CameraFrameSource:
    """Reads BGR frames from a webcam index or a video file path."""

    def __init__(self, source: Union[int, str] = 0):
        self.source = source
        self._cap: Optional[cv2.VideoCapture] = None

    def open(self) -> bool:
        self._cap = _open_camera(self.source)
        if not self._cap.isOpened():
            logger.error(f"Cannot open video source: {self.source}")
            return False
        return True

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        success, frame = self._cap.read()
        return frame if success else None

    def release(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
