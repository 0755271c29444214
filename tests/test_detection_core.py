"""Tests for the anomaly detection state machine."""

import pytest

from focus_model.detection_core import (
    AnomalyDetector,
    AnomalyEvent,
    EventKind,
    FaceDetection,
    ObjectDetection,
    Severity,
    filter_object_detections,
    gaze_deviation,
    is_looking_away,
    passes_book_filter,
)


def _face(x: float = 0.5) -> FaceDetection:
    return FaceDetection(x_center=x, y_center=0.5, width=0.2, height=0.3)


def _feed(detector, faces, start, end, step=100, objects=None):
    events = []
    for t in range(start, end + 1, step):
        events.extend(detector.process_frame(faces, objects, t))
    return events


def _of(events, kind):
    return [e for e in events if e.kind == kind]


class TestHeuristics:
    def test_gaze_deviation(self):
        assert gaze_deviation(_face(0.75)) == pytest.approx(0.25)
        assert gaze_deviation(_face(0.25)) == pytest.approx(0.25)

    def test_looking_away_margin(self):
        assert is_looking_away(_face(0.75))
        assert is_looking_away(_face(0.2))
        assert not is_looking_away(_face(0.55))
        assert not is_looking_away(_face(0.5))

    def test_out_of_range_coordinates_do_not_raise(self):
        assert is_looking_away(_face(5.0))
        assert is_looking_away(_face(-3.0))

    def test_book_filter_rejects_wide_box(self):
        det = ObjectDetection("book", 0.62, (0, 0, 250, 100))
        assert not passes_book_filter(det)

    def test_book_filter_accepts_book_shape(self):
        det = ObjectDetection("book", 0.7, (10, 10, 100, 80))
        assert passes_book_filter(det)

    def test_book_filter_size_and_confidence(self):
        assert not passes_book_filter(ObjectDetection("book", 0.9, (0, 0, 40, 40)))
        assert not passes_book_filter(ObjectDetection("book", 0.64, (0, 0, 100, 80)))

    def test_book_filter_zero_height(self):
        assert not passes_book_filter(ObjectDetection("book", 0.9, (0, 0, 100, 0)))

    def test_filter_drops_person_and_unknown_labels(self):
        dets = [
            ObjectDetection("person", 0.99, (0, 0, 200, 400)),
            ObjectDetection("cup", 0.95, (0, 0, 50, 50)),
            ObjectDetection("cell phone", 0.9, (0, 0, 40, 80)),
            ObjectDetection("laptop", 0.6, (0, 0, 300, 200)),
        ]
        kept = filter_object_detections(dets)
        assert [d.label for d in kept] == ["cell phone"]

    def test_filter_book_refinement_can_be_disabled(self):
        det = ObjectDetection("book", 0.62, (0, 0, 250, 100))
        assert filter_object_detections([det]) == []
        assert filter_object_detections([det], book_filter=False) == [det]


class TestNoFace:
    def test_single_alert_then_recovery(self):
        detector = AnomalyDetector()
        events = _feed(detector, [], 0, 9900)
        assert events == []

        events = detector.process_frame([], None, 10000)
        events += detector.process_frame([], None, 10001)
        alerts = _of(events, EventKind.NO_FACE)
        assert len(alerts) == 1
        assert alerts[0].timestamp == 10000
        assert alerts[0].severity == Severity.ALERT
        assert alerts[0].message == "No face detected for 10.0 seconds"

        events = _feed(detector, [_face()], 10100, 11000)
        assert len(_of(events, EventKind.FACE_RETURNED)) == 1
        assert events[0].message == "Face detected again"
        assert _of(events, EventKind.NO_FACE) == []
        assert detector.state.no_face_since is None

    def test_sustained_streak_is_rate_limited(self):
        detector = AnomalyDetector()
        events = _feed(detector, [], 0, 30000)
        alerts = _of(events, EventKind.NO_FACE)
        # repeats need strictly more than one window since the last alert
        assert [a.timestamp for a in alerts] == [10000, 20100]

    def test_three_windows_give_three_alerts(self):
        detector = AnomalyDetector()
        alerts = _of(_feed(detector, [], 0, 30200), EventKind.NO_FACE)
        assert [a.timestamp for a in alerts] == [10000, 20100, 30200]
        assert detector.counters.no_face == 3
        assert detector.counters.total == 3

    def test_no_face_clears_looking_away(self):
        detector = AnomalyDetector()
        detector.process_frame([_face(0.9)], None, 0)
        assert detector.state.looking_away_since == 0
        detector.process_frame([], None, 100)
        assert detector.state.looking_away_since is None
        assert detector.state.no_face_since == 100

    def test_custom_threshold(self):
        detector = AnomalyDetector({"timing": {"NO_FACE_THRESHOLD": 1000}})
        alerts = _of(_feed(detector, [], 0, 1000), EventKind.NO_FACE)
        assert len(alerts) == 1
        assert alerts[0].message == "No face detected for 1.0 seconds"


class TestLookingAway:
    def test_far_off_center_alerts_once(self):
        detector = AnomalyDetector()
        events = _feed(detector, [_face(0.75)], 0, 9000)
        alerts = _of(events, EventKind.LOOKING_AWAY)
        assert len(alerts) == 1
        assert alerts[0].timestamp == 5000
        assert alerts[0].severity == Severity.WARNING
        assert alerts[0].message == "Looking away for 5.0 seconds"

    def test_near_center_never_alerts(self):
        detector = AnomalyDetector()
        events = _feed(detector, [_face(0.55)], 0, 20000)
        assert events == []
        assert detector.state.looking_away_since is None

    def test_recovery_notice(self):
        detector = AnomalyDetector()
        _feed(detector, [_face(0.8)], 0, 1000)
        events = detector.process_frame([_face(0.5)], None, 1100)
        assert len(events) == 1
        assert events[0].kind == EventKind.GAZE_RETURNED
        assert events[0].severity == Severity.SUCCESS
        assert events[0].message == "Looking at camera again"
        assert detector.counters.total == 0


class TestMultipleFaces:
    def test_alert_carries_count_and_is_rate_limited(self):
        detector = AnomalyDetector()
        events = _feed(detector, [_face(0.3), _face(0.7)], 0, 5000)
        alerts = _of(events, EventKind.MULTIPLE_FACES)
        assert len(alerts) == 1
        assert alerts[0].message == "Multiple faces detected: 2 people in frame"

        events = detector.process_frame([_face(), _face(), _face()], None, 5100)
        assert events[0].message == "Multiple faces detected: 3 people in frame"
        assert detector.counters.multiple_faces == 2

    def test_clears_both_timers(self):
        detector = AnomalyDetector()
        detector.process_frame([], None, 0)
        assert detector.state.no_face_since == 0
        detector.process_frame([_face(), _face()], None, 100)
        assert detector.state.no_face_since is None
        assert detector.state.looking_away_since is None

        detector.process_frame([_face(0.9)], None, 200)
        assert detector.state.looking_away_since == 200
        # Rate-limited this time, timers still reset
        events = detector.process_frame([_face(), _face()], None, 300)
        assert events == []
        assert detector.state.no_face_since is None
        assert detector.state.looking_away_since is None


class TestObjects:
    def test_book_refinement(self):
        detector = AnomalyDetector()
        wide_book = ObjectDetection("book", 0.62, (0, 0, 250, 100))
        assert detector.process_frame(None, [wide_book], 0) == []

        detector = AnomalyDetector()
        book = ObjectDetection("book", 0.7, (10, 10, 100, 80))
        events = detector.process_frame(None, [book], 0)
        assert len(events) == 1
        assert events[0].kind == EventKind.SUSPICIOUS_OBJECT
        assert events[0].message == "Suspicious object detected: book (70.0% confidence)"
        assert detector.counters.suspicious_object == 1

    def test_object_pass_is_rate_limited(self):
        detector = AnomalyDetector()
        phone = ObjectDetection("cell phone", 0.9, (0, 0, 40, 80))
        detector.process_frame(None, [phone], 0)
        assert detector.last_stats.object_check_ran

        detector.process_frame(None, [phone], 1000)
        assert not detector.last_stats.object_check_ran
        assert not detector.object_check_due(1999)
        assert detector.object_check_due(2000)

    def test_cooldown_per_class(self):
        detector = AnomalyDetector()
        phone = ObjectDetection("cell phone", 0.9, (0, 0, 40, 80))
        timeline = {t: detector.process_frame(None, [phone], t) for t in (0, 2000, 10000, 12000)}
        assert len(timeline[0]) == 1
        assert timeline[2000] == []
        assert timeline[10000] == []
        assert len(timeline[12000]) == 1

    def test_duplicate_class_in_one_frame(self):
        detector = AnomalyDetector()
        phones = [ObjectDetection("cell phone", 0.9, (0, 0, 40, 80)),
                  ObjectDetection("cell phone", 0.8, (100, 0, 40, 80))]
        assert len(detector.process_frame(None, phones, 0)) == 1

    def test_confidence_must_exceed_threshold(self):
        detector = AnomalyDetector()
        laptop = ObjectDetection("laptop", 0.6, (0, 0, 300, 200))
        assert detector.process_frame(None, [laptop], 0) == []

    def test_sightings_are_evicted(self):
        labels = [f"obj{i}" for i in range(50)]
        detector = AnomalyDetector({"detection": {"SUSPICIOUS_OBJECTS": labels}})
        for i, label in enumerate(labels):
            t = i * 2000
            events = detector.process_frame(None, [ObjectDetection(label, 0.9, (0, 0, 10, 10))], t)
            assert len(events) == 1
            sightings = detector.state.recent_object_sightings
            assert len(sightings) <= 8
            assert all(t - seen <= 15000 for seen in sightings.values())
        assert len(detector.state.recent_object_sightings) == 8

    def test_face_events_come_first(self):
        detector = AnomalyDetector()
        phone = ObjectDetection("cell phone", 0.9, (0, 0, 40, 80))
        events = detector.process_frame([_face(), _face()], [phone], 0)
        assert [e.kind for e in events] == [EventKind.MULTIPLE_FACES, EventKind.SUSPICIOUS_OBJECT]


class TestStateHandling:
    def test_out_of_order_timestamp_is_clamped(self):
        detector = AnomalyDetector()
        detector.process_frame([], None, 0)
        detector.process_frame([], None, 10000)
        events = detector.process_frame([], None, 9000)
        assert events == []
        assert detector.last_stats.timestamp == 10000
        assert detector.last_stats.no_face_ms == 10000

    def test_missing_face_oracle_skips_face_branch(self):
        detector = AnomalyDetector()
        detector.process_frame([], None, 0)
        assert detector.process_frame(None, None, 20000) == []
        assert detector.state.no_face_since == 0
        assert detector.last_stats.face_count is None

    def test_session_lifecycle_resets_counters(self):
        detector = AnomalyDetector()
        detector.start_session()
        _feed(detector, [], 0, 10000)
        detector.process_frame([_face()], None, 10100)
        assert detector.counters.total == 1

        summary = detector.end_session()
        assert summary == {
            "totalEvents": 1,
            "noFaceEvents": 1,
            "lookingAwayEvents": 0,
            "multipleFaceEvents": 0,
            "suspiciousObjectEvents": 0,
        }
        assert detector.counters.total == 0

        detector.start_session()
        assert detector.counters.total == 0
        assert detector.get_recent_events() == []

    def test_recovery_notices_are_not_counted(self):
        counters = AnomalyDetector().counters
        counters.record(AnomalyEvent(EventKind.FACE_RETURNED, Severity.SUCCESS, "Face detected again", 0))
        counters.record(AnomalyEvent(EventKind.LOOKING_AWAY, Severity.WARNING, "Looking away for 5.0 seconds", 0))
        assert counters.total == 1
        assert counters.looking_away == 1

    def test_reset_timers_keeps_counters(self):
        detector = AnomalyDetector()
        _feed(detector, [], 0, 10000)
        detector.reset_timers()
        assert detector.state.no_face_since is None
        assert detector.counters.no_face == 1

    def test_recent_events_buffer(self):
        detector = AnomalyDetector()
        _feed(detector, [], 0, 10000)
        detector.process_frame([_face()], None, 10100)
        recent = detector.get_recent_events()
        assert [e["kind"] for e in recent] == ["no-face", "face-returned"]
        assert recent[1]["type"] == "success"
        assert detector.get_recent_events(limit=1) == recent[-1:]

    def test_frame_stats(self):
        detector = AnomalyDetector()
        detector.process_frame([], None, 0)
        detector.process_frame([], None, 2500)
        stats = detector.last_stats.to_dict()
        assert stats["face_count"] == 0
        assert stats["no_face_seconds"] == 2.5
        assert stats["looking_away_seconds"] == 0.0
        assert stats["events"] == []
