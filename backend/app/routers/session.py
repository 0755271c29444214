"""
Session Router
Start, end and inspect interview sessions.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.schemas import (
    SessionStartRequest, SessionEndRequest, SessionResponse, SessionDetailResponse,
)
from app.services import session_service
from app.services.session_service import InvalidSessionId, SessionNotFound

logger = logging.getLogger("focus.session_router")

router = APIRouter(prefix="/api/session", tags=["Session"])


def error_response(status_code: int, message: str, error: str = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@router.post("/start", status_code=201)
def start_session(data: Optional[SessionStartRequest] = None, db: Session = Depends(get_db)):
    """Start a new interview session"""
    data = data or SessionStartRequest()
    try:
        session = session_service.start_session(db, data.candidate_name)
    except Exception as e:
        logger.error(f"Error starting session: {e}")
        db.rollback()
        return error_response(500, "Error starting session", str(e))

    return {
        "success": True,
        "message": "Session started successfully",
        "sessionId": session.id,
    }


@router.post("/end")
def end_session(data: Optional[SessionEndRequest] = None, db: Session = Depends(get_db)):
    """End a session and compute its summary from the stored events"""
    data = data or SessionEndRequest()
    try:
        session = session_service.end_session(db, data.session_id)
    except InvalidSessionId:
        return error_response(400, "Invalid sessionId")
    except SessionNotFound:
        return error_response(404, "Session not found")
    except Exception as e:
        logger.error(f"Error ending session {data.session_id}: {e}")
        db.rollback()
        return error_response(500, "Error ending session", str(e))

    return {
        "success": True,
        "message": "Session ended successfully",
        "session": SessionResponse.model_validate(session),
    }


@router.get("/details/{session_id}")
def get_session_details(session_id: str, db: Session = Depends(get_db)):
    """Get a session with its events"""
    try:
        session = session_service.get_session(db, session_id)
    except InvalidSessionId:
        return error_response(400, "Invalid session ID")
    except SessionNotFound:
        return error_response(404, "Session not found")
    except Exception as e:
        logger.error(f"Error retrieving session {session_id}: {e}")
        return error_response(500, "Error retrieving session", str(e))

    return {
        "success": True,
        "session": SessionDetailResponse.model_validate(session),
    }
