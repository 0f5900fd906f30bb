from sqlalchemy import Column, String, DateTime, Numeric, Boolean, JSON
from spend_circle.db.database import Base
from spend_circle.models._columns import new_id, utcnow


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    user_id = Column(String, nullable=False, index=True)  # Who logged it, not necessarily the payer
    description = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(50), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    recurring_expense_id = Column(String, nullable=True, index=True)
    is_split = Column(Boolean, nullable=False, default=False)
    circle_id = Column(String, nullable=True, index=True)
    split_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
