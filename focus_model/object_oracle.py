"""
Object Oracle - YOLO (COCO) object detection
COCO class names line up with the suspicious-object vocabulary
('cell phone', 'book', 'laptop', ...).

Performance:
- GPU (CUDA) inference with FP16 half-precision when available
- Small default model and inference resolution
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import torch
from ultralytics import YOLO

from .detection_core import ObjectDetection

logger = logging.getLogger("focus.object_oracle")

DEFAULT_WEIGHTS = "yolov8n.pt"
DEFAULT_IMGSZ = 640
# Raw floor; the detector applies its own per-class thresholds
DEFAULT_CONFIDENCE = 0.25


class ObjectOracle:
    """Wraps a YOLO model and returns ObjectDetection lists"""

    def __init__(self, weights: Union[str, Path] = DEFAULT_WEIGHTS,
                 confidence: float = DEFAULT_CONFIDENCE, imgsz: int = DEFAULT_IMGSZ,
                 device: Optional[str] = None):
        self.confidence = confidence
        self.imgsz = imgsz
        self._setup_device(device)
        logger.info(f"Loading YOLO model from: {weights}")
        self.model = YOLO(str(weights))
        self.model.to(self.device)
        logger.info(f"Model device: {self.device}")

    def _setup_device(self, device: Optional[str]):
        """Select GPU if available, enable FP16 half-precision"""
        if device is not None:
            self.device = device
        elif torch.cuda.is_available():
            self.device = "cuda"
            logger.info(f"GPU detected: {torch.cuda.get_device_name(0)}")
        else:
            self.device = "cpu"
            logger.info("No GPU detected, running on CPU")
        self.use_half = self.device == "cuda"

    def detect(self, frame: np.ndarray) -> List[ObjectDetection]:
        results = self.model(
            frame,
            stream=False,
            conf=self.confidence,
            device=self.device,
            half=self.use_half,
            imgsz=self.imgsz,
            verbose=False,
        )

        detections = []
        for r in results:
            for box in r.boxes:
                x1, y1, x2, y2 = (float(v) for v in box.xyxy[0])
                cls = int(box.cls[0])
                detections.append(ObjectDetection(
                    label=r.names[cls],
                    confidence=float(box.conf[0]),
                    bbox=(x1, y1, x2 - x1, y2 - y1),
                ))
        return detections
