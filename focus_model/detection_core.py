"""
Anomaly Detection Core - Headless/API Version
Turns per-frame face and object detections into debounced anomaly events.
No models are loaded here: callers pass in whatever the oracles returned.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger("focus.detector")


class EventKind(str, Enum):
    """Anomaly categories plus the two recovery notices"""
    NO_FACE = "no-face"
    LOOKING_AWAY = "looking-away"
    MULTIPLE_FACES = "multiple-faces"
    SUSPICIOUS_OBJECT = "suspicious-object"
    FACE_RETURNED = "face-returned"
    GAZE_RETURNED = "gaze-returned"


class Severity(str, Enum):
    """Event tags accepted by the session recorder"""
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"
    SUCCESS = "success"


@dataclass
class AnomalyEvent:
    """Represents a single emitted event"""
    kind: EventKind
    severity: Severity
    message: str
    timestamp: float

    @property
    def is_anomaly(self) -> bool:
        return self.kind not in (EventKind.FACE_RETURNED, EventKind.GAZE_RETURNED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "type": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass
class FaceDetection:
    """Face oracle output. Box coordinates are normalized to [0, 1]."""
    x_center: float
    y_center: float
    width: float
    height: float
    landmarks: List[Tuple[float, float]] = field(default_factory=list)
    score: Optional[float] = None


@dataclass
class ObjectDetection:
    """Object oracle output. bbox is (x, y, width, height) in pixels."""
    label: str
    confidence: float
    bbox: Tuple[float, float, float, float]


@dataclass
class SessionCounters:
    """Running totals for the active session"""
    no_face: int = 0
    looking_away: int = 0
    multiple_faces: int = 0
    suspicious_object: int = 0
    total: int = 0

    def record(self, event: AnomalyEvent):
        """Count an anomaly. Recovery notices are not counted."""
        if not event.is_anomaly:
            return
        if event.kind == EventKind.NO_FACE:
            self.no_face += 1
        elif event.kind == EventKind.LOOKING_AWAY:
            self.looking_away += 1
        elif event.kind == EventKind.MULTIPLE_FACES:
            self.multiple_faces += 1
        elif event.kind == EventKind.SUSPICIOUS_OBJECT:
            self.suspicious_object += 1
        self.total += 1

    def to_summary(self) -> Dict[str, int]:
        """Same keys as the persisted session summary"""
        return {
            "totalEvents": self.total,
            "noFaceEvents": self.no_face,
            "lookingAwayEvents": self.looking_away,
            "multipleFaceEvents": self.multiple_faces,
            "suspiciousObjectEvents": self.suspicious_object,
        }


@dataclass
class DetectorState:
    """Mutable per-session state. Never shared between sessions."""
    no_face_since: Optional[float] = None
    looking_away_since: Optional[float] = None
    # None means "never alerted"
    last_alert_time: Dict[EventKind, Optional[float]] = field(default_factory=lambda: {
        EventKind.NO_FACE: None,
        EventKind.LOOKING_AWAY: None,
        EventKind.MULTIPLE_FACES: None,
    })
    recent_object_sightings: Dict[str, float] = field(default_factory=dict)
    last_object_check: Optional[float] = None
    last_frame_time: Optional[float] = None
    counters: SessionCounters = field(default_factory=SessionCounters)


@dataclass
class FrameStats:
    """Per-frame snapshot for status displays and logging"""
    timestamp: float
    face_count: Optional[int] = None
    no_face_ms: float = 0.0
    looking_away_ms: float = 0.0
    suspicious_count: int = 0
    object_check_ran: bool = False
    events: List[AnomalyEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "face_count": self.face_count,
            "no_face_seconds": round(self.no_face_ms / 1000.0, 1),
            "looking_away_seconds": round(self.looking_away_ms / 1000.0, 1),
            "suspicious_count": self.suspicious_count,
            "object_check_ran": self.object_check_ran,
            "events": [e.to_dict() for e in self.events],
        }


# ============================================================================
# DEFAULTS
# ============================================================================

SUSPICIOUS_OBJECTS = ("book", "notebook", "cell phone", "laptop", "mouse", "keyboard", "remote")
PERSON_LABEL = "person"
BOOK_LABEL = "book"


# ============================================================================
# HEURISTICS
# ============================================================================

def gaze_deviation(face: FaceDetection) -> float:
    """Horizontal distance of the face box center from the frame center"""
    return abs(face.x_center - 0.5)


def is_looking_away(face: FaceDetection, margin: float = 0.2) -> bool:
    return gaze_deviation(face) > margin


def passes_book_filter(
    detection: ObjectDetection,
    aspect_range: Tuple[float, float] = (0.6, 1.8),
    min_width: float = 50,
    min_height: float = 30,
    min_confidence: float = 0.65,
) -> bool:
    """Shape check that rejects the usual false-positive book boxes."""
    _, _, width, height = detection.bbox
    if height <= 0:
        return False
    aspect_ratio = width / height
    return (
        aspect_range[0] <= aspect_ratio <= aspect_range[1]
        and width > min_width
        and height > min_height
        and detection.confidence > min_confidence
    )


def filter_object_detections(
    detections: Iterable[ObjectDetection],
    suspicious: Sequence[str] = SUSPICIOUS_OBJECTS,
    confidence_threshold: float = 0.6,
    book_filter: bool = True,
    **book_kwargs,
) -> List[ObjectDetection]:
    """
    Keep only suspicious, confident detections.
    Person boxes are dropped first since faces are handled separately.
    """
    kept = []
    for det in detections:
        if det.label == PERSON_LABEL:
            continue
        if book_filter and det.label == BOOK_LABEL and not passes_book_filter(det, **book_kwargs):
            continue
        if det.label in suspicious and det.confidence > confidence_threshold:
            kept.append(det)
    return kept


# ============================================================================
# ANOMALY DETECTOR
# ============================================================================

class AnomalyDetector:
    """
    Debouncing state machine over oracle outputs.
    One instance per monitoring session; process_frame() is not re-entrant.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._initialize_config()
        self.state = DetectorState()
        self.last_stats: Optional[FrameStats] = None

        # Ring buffer of recent events
        self.events_buffer: deque = deque(maxlen=500)

    def _initialize_config(self):
        """Extract config values with defaults"""
        timing = self.config.get("timing", {})
        detection = self.config.get("detection", {})

        self.NO_FACE_THRESHOLD = timing.get("NO_FACE_THRESHOLD", 10000)
        self.LOOKING_AWAY_THRESHOLD = timing.get("LOOKING_AWAY_THRESHOLD", 5000)
        self.MULTIPLE_FACES_COOLDOWN = timing.get("MULTIPLE_FACES_COOLDOWN", 5000)
        self.OBJECT_DETECTION_INTERVAL = timing.get("OBJECT_DETECTION_INTERVAL", 2000)
        self.OBJECT_COOLDOWN = timing.get("OBJECT_COOLDOWN", 10000)
        self.OBJECT_EVICTION_AGE = timing.get("OBJECT_EVICTION_AGE", 15000)

        self.GAZE_MARGIN = detection.get("GAZE_MARGIN", 0.2)
        self.OBJECT_CONFIDENCE_THRESHOLD = detection.get("OBJECT_CONFIDENCE_THRESHOLD", 0.6)
        self.SUSPICIOUS_OBJECTS = tuple(detection.get("SUSPICIOUS_OBJECTS", SUSPICIOUS_OBJECTS))
        self.BOOK_SHAPE_FILTER = detection.get("BOOK_SHAPE_FILTER", True)
        self.BOOK_MIN_CONFIDENCE = detection.get("BOOK_MIN_CONFIDENCE", 0.65)
        self.BOOK_ASPECT_RANGE = tuple(detection.get("BOOK_ASPECT_RANGE", (0.6, 1.8)))
        self.BOOK_MIN_WIDTH = detection.get("BOOK_MIN_WIDTH", 50)
        self.BOOK_MIN_HEIGHT = detection.get("BOOK_MIN_HEIGHT", 30)

    # ──────────────────────────────────────────────────────
    # Session lifecycle
    # ──────────────────────────────────────────────────────

    def start_session(self):
        """Fresh state and zeroed counters."""
        self.state = DetectorState()
        self.last_stats = None
        self.events_buffer.clear()

    def end_session(self) -> Dict[str, int]:
        summary = self.state.counters.to_summary()
        self.state = DetectorState()
        return summary

    def reset_timers(self):
        """Camera stopped: drop open streaks, keep counters and rate limits."""
        self.state.no_face_since = None
        self.state.looking_away_since = None

    @property
    def counters(self) -> SessionCounters:
        return self.state.counters

    def get_recent_events(self, limit: int = 200) -> List[Dict[str, Any]]:
        events = list(self.events_buffer)[-limit:]
        return [e.to_dict() for e in events]

    # ──────────────────────────────────────────────────────
    # Per-frame processing
    # ──────────────────────────────────────────────────────

    def object_check_due(self, now: float) -> bool:
        last = self.state.last_object_check
        return last is None or now - last >= self.OBJECT_DETECTION_INTERVAL

    def process_frame(
        self,
        face_detections: Optional[Sequence[FaceDetection]],
        object_detections: Optional[Sequence[ObjectDetection]],
        now: float,
    ) -> List[AnomalyEvent]:
        """
        Classify one frame. Returns the events it produced, face events first.
        face_detections=None means the face oracle had nothing to offer for
        this frame; object_detections=None means no object pass was run.
        """
        now = self._clamp_timestamp(now)
        stats = FrameStats(timestamp=now)
        events: List[AnomalyEvent] = []

        if face_detections is not None:
            stats.face_count = len(face_detections)
            if not face_detections:
                events.extend(self._handle_no_face(now))
            elif len(face_detections) == 1:
                events.extend(self._handle_single_face(face_detections[0], now))
            else:
                events.extend(self._handle_multiple_faces(len(face_detections), now))

        if object_detections is not None and self.object_check_due(now):
            stats.object_check_ran = True
            object_events, stats.suspicious_count = self._handle_objects(object_detections, now)
            events.extend(object_events)

        if self.state.no_face_since is not None:
            stats.no_face_ms = now - self.state.no_face_since
        if self.state.looking_away_since is not None:
            stats.looking_away_ms = now - self.state.looking_away_since

        for event in events:
            self.state.counters.record(event)
            self.events_buffer.append(event)
            logger.debug(f"[{event.severity.value}] {event.message}")

        stats.events = events
        self.last_stats = stats
        return events

    def _clamp_timestamp(self, now: float) -> float:
        last = self.state.last_frame_time
        if last is not None and now < last:
            logger.warning(f"Out-of-order frame timestamp {now} < {last}, clamping")
            now = last
        self.state.last_frame_time = now
        return now

    def _rate_limit_open(self, kind: EventKind, now: float, window: float) -> bool:
        last = self.state.last_alert_time[kind]
        return last is None or now - last > window

    def _handle_no_face(self, now: float) -> List[AnomalyEvent]:
        state = self.state
        events = []
        if state.no_face_since is None:
            state.no_face_since = now

        elapsed = now - state.no_face_since
        if elapsed >= self.NO_FACE_THRESHOLD and \
                self._rate_limit_open(EventKind.NO_FACE, now, self.NO_FACE_THRESHOLD):
            events.append(AnomalyEvent(
                EventKind.NO_FACE, Severity.ALERT,
                f"No face detected for {elapsed / 1000.0:.1f} seconds", now,
            ))
            state.last_alert_time[EventKind.NO_FACE] = now

        # No-face and looking-away streaks cannot coexist
        state.looking_away_since = None
        return events

    def _handle_single_face(self, face: FaceDetection, now: float) -> List[AnomalyEvent]:
        state = self.state
        events = []
        if state.no_face_since is not None:
            events.append(AnomalyEvent(EventKind.FACE_RETURNED, Severity.SUCCESS, "Face detected again", now))
            state.no_face_since = None

        if is_looking_away(face, self.GAZE_MARGIN):
            if state.looking_away_since is None:
                state.looking_away_since = now
            elapsed = now - state.looking_away_since
            if elapsed >= self.LOOKING_AWAY_THRESHOLD and \
                    self._rate_limit_open(EventKind.LOOKING_AWAY, now, self.LOOKING_AWAY_THRESHOLD):
                events.append(AnomalyEvent(
                    EventKind.LOOKING_AWAY, Severity.WARNING,
                    f"Looking away for {elapsed / 1000.0:.1f} seconds", now,
                ))
                state.last_alert_time[EventKind.LOOKING_AWAY] = now
        elif state.looking_away_since is not None:
            events.append(AnomalyEvent(EventKind.GAZE_RETURNED, Severity.SUCCESS, "Looking at camera again", now))
            state.looking_away_since = None
        return events

    def _handle_multiple_faces(self, count: int, now: float) -> List[AnomalyEvent]:
        state = self.state
        events = []
        if self._rate_limit_open(EventKind.MULTIPLE_FACES, now, self.MULTIPLE_FACES_COOLDOWN):
            events.append(AnomalyEvent(
                EventKind.MULTIPLE_FACES, Severity.ALERT,
                f"Multiple faces detected: {count} people in frame", now,
            ))
            state.last_alert_time[EventKind.MULTIPLE_FACES] = now

        state.no_face_since = None
        state.looking_away_since = None
        return events

    def _handle_objects(self, detections: Sequence[ObjectDetection], now: float) -> Tuple[List[AnomalyEvent], int]:
        state = self.state
        state.last_object_check = now
        suspicious = filter_object_detections(
            detections,
            suspicious=self.SUSPICIOUS_OBJECTS,
            confidence_threshold=self.OBJECT_CONFIDENCE_THRESHOLD,
            book_filter=self.BOOK_SHAPE_FILTER,
            aspect_range=self.BOOK_ASPECT_RANGE,
            min_width=self.BOOK_MIN_WIDTH,
            min_height=self.BOOK_MIN_HEIGHT,
            min_confidence=self.BOOK_MIN_CONFIDENCE,
        )

        events = []
        for det in suspicious:
            last_seen = state.recent_object_sightings.get(det.label)
            if last_seen is None or now - last_seen > self.OBJECT_COOLDOWN:
                events.append(AnomalyEvent(
                    EventKind.SUSPICIOUS_OBJECT, Severity.ALERT,
                    f"Suspicious object detected: {det.label} ({det.confidence * 100:.1f}% confidence)", now,
                ))
                state.recent_object_sightings[det.label] = now

        stale = [label for label, seen in state.recent_object_sightings.items()
                 if now - seen > self.OBJECT_EVICTION_AGE]
        for label in stale:
            del state.recent_object_sightings[label]

        return events, len(suspicious)
