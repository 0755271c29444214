"""
Session Monitor - periodic driver for the anomaly detector.

Each tick reads one frame, asks the oracles for detections and feeds them to
AnomalyDetector.process_frame(). Ticks never overlap. When a tick overruns
its slot the missed ticks are dropped instead of queued, so latency stays
bounded by one frame interval plus the slowest oracle call.
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Protocol

from .detection_core import AnomalyDetector, AnomalyEvent, FaceDetection, ObjectDetection

logger = logging.getLogger("focus.monitor")


class FrameSource(Protocol):
    def read(self) -> Optional[Any]: ...


class FaceDetectorOracle(Protocol):
    def detect(self, frame: Any) -> List[FaceDetection]: ...


class ObjectDetectorOracle(Protocol):
    def detect(self, frame: Any) -> List[ObjectDetection]: ...


class EventSink(Protocol):
    def log_event(self, event: AnomalyEvent) -> bool: ...


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SessionMonitor:
    """
    Ticker that owns the frame loop and backpressure policy.

    - face_oracle / object_oracle may be None (degraded mode).
    - recorder receives every emitted event; it must not block.
    """

    def __init__(
        self,
        detector: AnomalyDetector,
        frame_source: FrameSource,
        face_oracle: Optional[FaceDetectorOracle] = None,
        object_oracle: Optional[ObjectDetectorOracle] = None,
        recorder: Optional[EventSink] = None,
        fps: float = 10.0,
        clock: Callable[[], float] = monotonic_ms,
        max_empty_reads: int = 50,
    ):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.detector = detector
        self.frame_source = frame_source
        self.face_oracle = face_oracle
        self.object_oracle = object_oracle
        self.recorder = recorder
        self.interval = 1.0 / fps
        self._clock = clock
        self._stopped = False
        self.max_empty_reads = max_empty_reads
        self._empty_reads = 0

        self.frames_processed = 0
        self.dropped_ticks = 0

        if face_oracle is None:
            logger.warning("No face oracle: face checks disabled")
        if object_oracle is None:
            logger.warning("No object oracle: suspicious-object checks disabled")

    @property
    def running(self) -> bool:
        return not self._stopped

    def stop(self):
        """Stop after the current tick. Detector state is left as-is."""
        self._stopped = True

    # ──────────────────────────────────────────────────────
    # One cycle
    # ──────────────────────────────────────────────────────

    async def tick(self) -> List[AnomalyEvent]:
        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(None, self.frame_source.read)
        if frame is None:
            self._empty_reads += 1
            if self._empty_reads >= self.max_empty_reads:
                logger.warning(f"No frames for {self._empty_reads} ticks, stopping")
                self.stop()
            return []
        self._empty_reads = 0

        now = self._clock()
        faces = await self._detect_faces(loop, frame)

        objects = None
        if self.object_oracle is not None and self.detector.object_check_due(now):
            objects = await self._detect_objects(loop, frame)

        events = self.detector.process_frame(faces, objects, now)
        self.frames_processed += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Frame {self.frames_processed}: {self.detector.last_stats.to_dict()}")

        if self.recorder is not None:
            for event in events:
                self.recorder.log_event(event)
        return events

    async def _detect_faces(self, loop, frame) -> Optional[List[FaceDetection]]:
        if self.face_oracle is None:
            return None
        try:
            return await loop.run_in_executor(None, self.face_oracle.detect, frame)
        except Exception as e:
            logger.error(f"Face detection error: {e}")
            return None

    async def _detect_objects(self, loop, frame) -> List[ObjectDetection]:
        try:
            return await loop.run_in_executor(None, self.object_oracle.detect, frame)
        except Exception as e:
            # An empty pass still counts as an attempt so a broken model is
            # not retried on every frame.
            logger.error(f"Object detection error: {e}")
            return []

    # ──────────────────────────────────────────────────────
    # Loop
    # ──────────────────────────────────────────────────────

    async def run(self, max_frames: Optional[int] = None):
        loop = asyncio.get_running_loop()
        self._stopped = False
        next_tick = loop.time()
        logger.info(f"Monitor started ({1.0 / self.interval:.1f} fps)")

        try:
            while not self._stopped:
                await self.tick()
                if max_frames is not None and self.frames_processed >= max_frames:
                    break

                next_tick += self.interval
                delay = next_tick - loop.time()
                if delay < 0:
                    missed = int(-delay // self.interval) + 1
                    self.dropped_ticks += missed
                    next_tick += missed * self.interval
                    delay = next_tick - loop.time()
                    logger.debug(f"Tick overran, dropped {missed} tick(s)")
                await asyncio.sleep(max(delay, 0.0))
        finally:
            self._stopped = True
            logger.info(f"Monitor stopped after {self.frames_processed} frames "
                        f"({self.dropped_ticks} dropped ticks)")
