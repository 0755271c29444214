"""
Pydantic Schemas for API request/response validation
JSON keys are camelCase on the wire (candidateName, sessionId, ...).
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Optional, List
from datetime import datetime


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ── Requests ─────────────────────────────────────────────
# Fields are untyped and optional: missing or mistyped values are reported
# by the service layer with the API's own error envelope, never a 422.
class SessionStartRequest(CamelModel):
    candidate_name: Any = None


class SessionEndRequest(CamelModel):
    session_id: Any = None


class EventCreate(CamelModel):
    session_id: Any = None
    type: Any = None
    message: Any = None


# ── Responses ────────────────────────────────────────────
class EventResponse(CamelModel):
    id: str
    session_id: str
    timestamp: datetime
    type: str
    message: str


class SessionSummary(CamelModel):
    total_events: int = 0
    no_face_events: int = 0
    looking_away_events: int = 0
    multiple_face_events: int = 0
    suspicious_object_events: int = 0


class SessionResponse(CamelModel):
    id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    candidate_name: str
    summary: Optional[SessionSummary] = None


class SessionDetailResponse(SessionResponse):
    events: List[EventResponse] = []
