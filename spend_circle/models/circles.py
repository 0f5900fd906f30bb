from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from spend_circle.db.database import Base
from spend_circle.models._columns import new_id, utcnow


class Circle(Base):
    __tablename__ = "circles"

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    owner_id = Column(String, nullable=False, index=True)  # Reference to auth provider
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_read = Column(JSON, nullable=True)  # {uid: iso timestamp}
    unread_counts = Column(JSON, nullable=True)  # {uid: int}


class CircleMember(Base):
    """One row per member; the profile snapshot is a value copy taken at join time."""
    __tablename__ = "circle_members"

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    circle_id = Column(String, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    profile = Column(JSON, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
