from sqlalchemy import Column, String, DateTime, Numeric, Boolean, JSON, Index
from spend_circle.db.database import Base
from spend_circle.models._columns import new_id, utcnow


class Debt(Base):
    __tablename__ = "debts"
    __table_args__ = (
        Index("ix_debts_circle_created", "circle_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=new_id, unique=True, nullable=False)
    circle_id = Column(String, nullable=True, index=True)
    transaction_id = Column(String, nullable=False, index=True)
    transaction_description = Column(String(200), nullable=False, default="")
    debtor_id = Column(String, nullable=False, index=True)
    debtor = Column(JSON, nullable=False)
    creditor_id = Column(String, nullable=False, index=True)
    creditor = Column(JSON, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # NULL on legacy rows that only carry is_settled
    settlement_status = Column(String(32), nullable=True, default="unsettled")
    is_settled = Column(Boolean, nullable=True)
    involved_uids = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
