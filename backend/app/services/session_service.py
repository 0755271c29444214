"""
Session Recorder Service
================================
Persistence side of the monitoring loop: session lifecycle, event log and
the per-session summary report.

Routers stay thin: every function here takes the request's DB session,
raises on invalid input and leaves HTTP status mapping to the caller.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session as SASession

from app.core.config import settings
from app.models.event import EVENT_TYPES, Event
from app.models.session import InterviewSession, utcnow

logger = logging.getLogger("focus.sessions")

_SESSION_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

# Summary counter -> keyword searched (case-insensitively) in event messages
SUMMARY_KEYWORDS = {
    "noFaceEvents": "no face detected",
    "lookingAwayEvents": "looking away",
    "multipleFaceEvents": "multiple faces detected",
    "suspiciousObjectEvents": "suspicious object detected",
}


class InvalidSessionId(ValueError):
    pass


class SessionNotFound(LookupError):
    pass


class InvalidEvent(ValueError):
    pass


def is_valid_session_id(session_id: Optional[str]) -> bool:
    return isinstance(session_id, str) and bool(_SESSION_ID_RE.match(session_id))


def _lookup(db: SASession, session_id: Optional[str]) -> InterviewSession:
    if not is_valid_session_id(session_id):
        raise InvalidSessionId(session_id)
    session = db.get(InterviewSession, session_id.lower())
    if session is None:
        raise SessionNotFound(session_id)
    return session


# ─────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────

def start_session(db: SASession, candidate_name: Any = None) -> InterviewSession:
    # Non-string names are stored as their text form
    session = InterviewSession(
        candidate_name=str(candidate_name) if candidate_name else settings.DEFAULT_CANDIDATE_NAME,
        start_time=utcnow(),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Session #%s started (candidate=%s)", session.id, session.candidate_name)
    return session


def summarize_events(events: Iterable[Event]) -> Dict[str, int]:
    """
    Count events per anomaly category by keyword match on the message.
    totalEvents counts every event of the session, notices included.
    """
    messages = [e.message.lower() for e in events]
    summary = {"totalEvents": len(messages)}
    for key, keyword in SUMMARY_KEYWORDS.items():
        summary[key] = sum(1 for m in messages if keyword in m)
    return summary


def end_session(db: SASession, session_id: Optional[str]) -> InterviewSession:
    session = _lookup(db, session_id)

    session.end_time = utcnow()
    session.duration = int((session.end_time - session.start_time).total_seconds() * 1000)
    session.summary = summarize_events(session.events)
    db.commit()
    db.refresh(session)

    logger.info(
        "Session #%s ended: %d ms, %d event(s)",
        session.id, session.duration, session.summary["totalEvents"],
    )
    return session


def get_session(db: SASession, session_id: Optional[str]) -> InterviewSession:
    return _lookup(db, session_id)


# ─────────────────────────────────────────────────────────
# Event log
# ─────────────────────────────────────────────────────────

def log_event(db: SASession, session_id: Optional[str], event_type: Optional[str],
              message: Optional[str]) -> Event:
    if event_type not in EVENT_TYPES:
        raise InvalidEvent(f"type must be one of {', '.join(EVENT_TYPES)}")
    if not message or not isinstance(message, str):
        raise InvalidEvent("message is required")
    try:
        session = _lookup(db, session_id)
    except (InvalidSessionId, SessionNotFound) as exc:
        raise InvalidEvent(f"unknown session: {session_id}") from exc

    event = Event(session_id=session.id, type=event_type, message=message, timestamp=utcnow())
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.debug("Event logged for session #%s: [%s] %s", session.id, event_type, message)
    return event


def list_events(db: SASession, session_id: Optional[str]) -> List[Event]:
    """Events of a session, newest first. Unknown sessions have none."""
    if not is_valid_session_id(session_id):
        raise InvalidSessionId(session_id)
    return (
        db.query(Event)
        .filter(Event.session_id == session_id.lower())
        .order_by(Event.timestamp.desc())
        .all()
    )
