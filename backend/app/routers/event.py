"""
Event Router
Append to and read a session's event log.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.schemas import EventCreate, EventResponse
from app.routers.session import error_response
from app.services import session_service
from app.services.session_service import InvalidSessionId

logger = logging.getLogger("focus.event_router")

router = APIRouter(prefix="/api/event", tags=["Event"])


@router.post("", status_code=201)
def log_event(data: Optional[EventCreate] = None, db: Session = Depends(get_db)):
    """Log a new event"""
    data = data or EventCreate()
    try:
        event = session_service.log_event(db, data.session_id, data.type, data.message)
    except Exception as e:
        logger.error(f"Error logging event: {e}")
        db.rollback()
        return error_response(500, "Error logging event", str(e))

    return {
        "success": True,
        "message": "Event logged successfully",
        "event": EventResponse.model_validate(event),
    }


@router.get("/session/{session_id}")
def get_session_events(session_id: str, db: Session = Depends(get_db)):
    """Get events for a session, newest first"""
    try:
        events = session_service.list_events(db, session_id)
    except InvalidSessionId:
        return error_response(400, "Invalid session ID")
    except Exception as e:
        logger.error(f"Error retrieving events for {session_id}: {e}")
        return error_response(500, "Error retrieving events", str(e))

    return {
        "success": True,
        "events": [EventResponse.model_validate(e) for e in events],
    }
