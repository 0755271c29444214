"""
Interview Session Model
"""

import secrets
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship
from app.core.database import Base


def new_object_id() -> str:
    """24 hex characters, same shape as a MongoDB ObjectId"""
    return secrets.token_hex(12)


def utcnow() -> datetime:
    # Naive UTC: SQLite drops tzinfo on the way back anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InterviewSession(Base):
    __tablename__ = "sessions"

    id = Column(String(24), primary_key=True, default=new_object_id)
    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # milliseconds
    candidate_name = Column(String(255), nullable=False, default="Unknown Candidate")
    summary = Column(JSON, nullable=True)

    events = relationship(
        "Event",
        back_populates="session",
        order_by="Event.timestamp",
        cascade="all, delete-orphan",
    )
