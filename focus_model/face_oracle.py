"""
Face Oracle - MediaPipe face detection
Returns normalized face boxes (and keypoints) for a BGR frame.
"""

import logging
import os
import urllib.request
from typing import List

import cv2
import mediapipe as mp
import numpy as np

from .detection_core import FaceDetection

logger = logging.getLogger("focus.face_oracle")


# ============================================================================
# MEDIAPIPE COMPATIBILITY LAYER
# mediapipe >= 0.10.30 removed mp.solutions; use mp.tasks API instead.
# ============================================================================

_USE_TASKS_API = not hasattr(mp, 'solutions')

_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.models')
_FACE_MODEL_PATH = os.path.join(_MODELS_DIR, 'blaze_face_short_range.tflite')
_FACE_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_detector/blaze_face_short_range/float16/latest/blaze_face_short_range.tflite'
)


def _ensure_model_downloaded():
    """Download the MediaPipe face detector model if not already cached."""
    os.makedirs(_MODELS_DIR, exist_ok=True)
    if not os.path.exists(_FACE_MODEL_PATH):
        logger.info(f"Downloading {os.path.basename(_FACE_MODEL_PATH)} ...")
        urllib.request.urlretrieve(_FACE_MODEL_URL, _FACE_MODEL_PATH)
        logger.info(f"Saved {os.path.basename(_FACE_MODEL_PATH)}")


class FaceOracle:
    """Short-range BlazeFace detector; one instance per camera."""

    def __init__(self, min_confidence: float = 0.7):
        self.min_confidence = min_confidence
        if _USE_TASKS_API:
            _ensure_model_downloaded()
            options = mp.tasks.vision.FaceDetectorOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=_FACE_MODEL_PATH),
                running_mode=mp.tasks.vision.RunningMode.IMAGE,
                min_detection_confidence=min_confidence,
            )
            self._detector = mp.tasks.vision.FaceDetector.create_from_options(options)
        else:
            # model_selection=0 is the short-range model
            self._detector = mp.solutions.face_detection.FaceDetection(
                model_selection=0,
                min_detection_confidence=min_confidence,
            )
        logger.info("Face oracle initialised (MediaPipe face detection)")

    def detect(self, frame: np.ndarray) -> List[FaceDetection]:
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        if _USE_TASKS_API:
            height, width = frame.shape[:2]
            mp_image = mp.Image(
                image_format=mp.ImageFormat.SRGB,
                data=np.ascontiguousarray(frame_rgb),
            )
            result = self._detector.detect(mp_image)
            return [self._from_task_detection(d, width, height) for d in result.detections]

        results = self._detector.process(frame_rgb)
        if not results.detections:
            return []
        return [self._from_solution_detection(d) for d in results.detections]

    @staticmethod
    def _from_task_detection(detection, width: int, height: int) -> FaceDetection:
        box = detection.bounding_box
        w = box.width / width
        h = box.height / height
        return FaceDetection(
            x_center=box.origin_x / width + w / 2,
            y_center=box.origin_y / height + h / 2,
            width=w,
            height=h,
            landmarks=[(kp.x, kp.y) for kp in (detection.keypoints or [])],
            score=detection.categories[0].score if detection.categories else None,
        )

    @staticmethod
    def _from_solution_detection(detection) -> FaceDetection:
        rel = detection.location_data.relative_bounding_box
        return FaceDetection(
            x_center=rel.xmin + rel.width / 2,
            y_center=rel.ymin + rel.height / 2,
            width=rel.width,
            height=rel.height,
            landmarks=[(kp.x, kp.y) for kp in detection.location_data.relative_keypoints],
            score=detection.score[0] if detection.score else None,
        )

    def close(self):
        try:
            self._detector.close()
        except Exception as e:
            logger.warning(f"Face oracle close failed: {e}")
