"""
Live monitoring entry point.

    python -m focus_model --candidate "Jane Doe" --api http://localhost:8000

Opens the camera, starts a recorder session on the backend, runs the monitor
until interrupted (or --max-frames), then ends the session and logs the
report.
"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .detection_core import AnomalyDetector
from .monitor import SessionMonitor
from .recorder import RecorderError, SessionRecorderClient

logger = logging.getLogger("focus.live")


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class MonitorConfig:
    """Immutable configuration for a live monitoring run"""

    candidate_name: str = "Unknown Candidate"
    api_base_url: str = "http://localhost:8000"
    record: bool = True

    # Frame source: camera index or video file path
    source: Union[int, str] = 0
    fps: float = 10.0
    max_frames: Optional[int] = None

    # Oracles
    face_confidence: float = 0.7
    enable_objects: bool = True
    yolo_weights: str = "yolov8n.pt"
    device: Optional[str] = None

    # Detector thresholds (ms)
    no_face_threshold: int = 10000
    looking_away_threshold: int = 5000
    book_shape_filter: bool = True

    def detector_config(self) -> Dict:
        return {
            "timing": {
                "NO_FACE_THRESHOLD": self.no_face_threshold,
                "LOOKING_AWAY_THRESHOLD": self.looking_away_threshold,
            },
            "detection": {
                "BOOK_SHAPE_FILTER": self.book_shape_filter,
            },
        }


def _parse_source(value: str) -> Union[int, str]:
    return int(value) if value.isdigit() else value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus-monitor",
        description="Monitor a camera feed for interview/exam anomalies",
    )
    parser.add_argument("--candidate", "-c", default="Unknown Candidate", help="Candidate name for the session")
    parser.add_argument("--api", default="http://localhost:8000", help="Backend base URL")
    parser.add_argument("--no-record", action="store_true", help="Run without a backend session")
    parser.add_argument("--source", "-i", type=_parse_source, default=0,
                        help="Camera index or video file path (default: 0)")
    parser.add_argument("--fps", type=float, default=10.0, help="Frames per second to analyse")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after N processed frames")
    parser.add_argument("--no-objects", action="store_true", help="Disable suspicious-object detection")
    parser.add_argument("--weights", default="yolov8n.pt", help="YOLO weights for object detection")
    parser.add_argument("--device", default=None, help="Inference device (cuda, cpu)")
    parser.add_argument("--no-book-filter", action="store_true", help="Disable the book shape filter")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    return MonitorConfig(
        candidate_name=args.candidate,
        api_base_url=args.api,
        record=not args.no_record,
        source=args.source,
        fps=args.fps,
        max_frames=args.max_frames,
        enable_objects=not args.no_objects,
        yolo_weights=args.weights,
        device=args.device,
        book_shape_filter=not args.no_book_filter,
    )


# ============================================================================
# RUN
# ============================================================================

def _load_oracles(config: MonitorConfig):
    """Each oracle may fail on its own; the monitor runs with what is left."""
    face_oracle = None
    object_oracle = None
    try:
        from .face_oracle import FaceOracle
        face_oracle = FaceOracle(min_confidence=config.face_confidence)
    except Exception as e:
        logger.error(f"Face oracle unavailable: {e}")

    if config.enable_objects:
        try:
            from .object_oracle import ObjectOracle
            object_oracle = ObjectOracle(weights=config.yolo_weights, device=config.device)
        except Exception as e:
            logger.error(f"Object oracle unavailable: {e}")
    return face_oracle, object_oracle


def format_report(summary: Dict[str, int], duration_ms: float) -> List[str]:
    return [
        f"Session Duration: {duration_ms / 60000.0:.1f} min",
        f"Total Events: {summary['totalEvents']}",
        f"No Face Events: {summary['noFaceEvents']}",
        f"Looking Away Events: {summary['lookingAwayEvents']}",
        f"Multiple Face Events: {summary['multipleFaceEvents']}",
        f"Suspicious Objects: {summary['suspiciousObjectEvents']}",
    ]


def _open_source(config: MonitorConfig):
    """Open the camera or video file, or return None if it cannot be read."""
    from .camera import CameraFrameSource

    source = CameraFrameSource(config.source)
    return source if source.open() else None


async def run(config: MonitorConfig) -> int:
    face_oracle, object_oracle = _load_oracles(config)
    if face_oracle is None and object_oracle is None:
        logger.error("No detection models could be loaded")
        return 1

    try:
        source = _open_source(config)
        if source is None:
            return 1
        await _monitor_session(config, source, face_oracle, object_oracle)
    finally:
        if face_oracle is not None:
            face_oracle.close()
    return 0


async def _monitor_session(config: MonitorConfig, source, face_oracle, object_oracle):
    detector = AnomalyDetector(config.detector_config())
    async with SessionRecorderClient(config.api_base_url) as recorder:
        if config.record:
            try:
                await recorder.start_session(config.candidate_name)
            except RecorderError as e:
                logger.error(f"{e} - continuing without recording")
        detector.start_session()
        started = time.monotonic()

        monitor = SessionMonitor(
            detector, source, face_oracle, object_oracle,
            recorder=recorder, fps=config.fps,
        )
        try:
            await monitor.run(max_frames=config.max_frames)
        except asyncio.CancelledError:
            logger.info("Monitoring cancelled")
        finally:
            source.release()
            detector.reset_timers()

        duration_ms = (time.monotonic() - started) * 1000.0
        for line in format_report(detector.end_session(), duration_ms):
            logger.info(line)

        if recorder.session_active:
            try:
                session = await recorder.end_session()
                logger.info(f"Recorded summary: {session.get('summary')}")
            except RecorderError as e:
                logger.error(str(e))


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("ultralytics").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        return asyncio.run(run(config_from_args(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
