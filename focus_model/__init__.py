"""
Focus Detection Model Package
Interview/exam anomaly detection over face and object detections.

Usage (Headless - feed oracle outputs yourself):
    from focus_model import AnomalyDetector, FaceDetection

    detector = AnomalyDetector()
    detector.start_session()
    events = detector.process_frame([FaceDetection(0.5, 0.5, 0.2, 0.3)], None, now=0)
    summary = detector.end_session()

Usage (Live camera, models loaded on demand):
    python -m focus_model --candidate "Jane Doe" --api http://localhost:8000

The oracle and camera modules (face_oracle, object_oracle, camera) pull in
MediaPipe / YOLO / OpenCV and are imported explicitly where needed.
"""

from .detection_core import (
    AnomalyDetector,
    AnomalyEvent,
    DetectorState,
    EventKind,
    FaceDetection,
    FrameStats,
    ObjectDetection,
    SessionCounters,
    Severity,
)
from .monitor import SessionMonitor
from .recorder import RecorderError, SessionRecorderClient

__all__ = [
    "AnomalyDetector",
    "AnomalyEvent",
    "DetectorState",
    "EventKind",
    "FaceDetection",
    "FrameStats",
    "ObjectDetection",
    "SessionCounters",
    "Severity",
    "SessionMonitor",
    "RecorderError",
    "SessionRecorderClient",
]
