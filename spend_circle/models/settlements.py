from sqlalchemy import Column, String, DateTime, Numeric, JSON
from spend_circle.db.database import Base
from spend_circle.models._columns import new_id, utcnow


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    circle_id = Column(String, nullable=False, index=True)
    from_user_id = Column(String, nullable=False, index=True)
    to_user_id = Column(String, nullable=False, index=True)
    from_user = Column(JSON, nullable=False)
    to_user = Column(JSON, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)
    debt_id = Column(String, nullable=True, index=True)  # Set when projected from a confirmed debt
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
