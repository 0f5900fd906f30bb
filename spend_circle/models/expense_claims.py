from sqlalchemy import Column, String, DateTime, JSON
from spend_circle.db.database import Base
from spend_circle.models._columns import new_id, utcnow


class ExpenseClaim(Base):
    __tablename__ = "expense_claims"

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    claimer_id = Column(String, nullable=False, index=True)
    claimer_profile = Column(JSON, nullable=False)
    payer_id = Column(String, nullable=False, index=True)
    expense_details = Column(JSON, nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
