"""
Session Event Model
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.session import new_object_id, utcnow

EVENT_TYPES = ("info", "warning", "alert", "success")


class Event(Base):
    __tablename__ = "events"

    id = Column(String(24), primary_key=True, default=new_object_id)
    session_id = Column(String(24), ForeignKey("sessions.id"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    type = Column(String(20), nullable=False)  # info, warning, alert, success
    message = Column(Text, nullable=False)

    session = relationship("InterviewSession", back_populates="events")
