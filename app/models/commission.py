from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base_class import Base

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"

class Commission(Base):
    __tablename__ = "commission"
    __table_args__ = (
        # One commission per client per calendar month
        UniqueConstraint("client_id", "month", name="uq_commission_client_month"),
        CheckConstraint("amount >= 0", name="ck_commission_amount_non_negative"),
        CheckConstraint("payment_status IN ('pending', 'paid')", name="ck_commission_payment_status"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    month = Column(String(7), nullable=False, index=True) # YYYY-MM
    payment_status = Column(String(20), nullable=False, default=PAYMENT_PENDING, index=True)
    client_id = Column(Integer, ForeignKey("referred_client.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copied from the client when the commission is created; clients never change agency
    agency_id = Column(Integer, ForeignKey("agency.id", ondelete="CASCADE"), nullable=False, index=True)
    paid_at = Column(DateTime, nullable=True)
    payment_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    client = relationship("ReferredClient", back_populates="commissions")
    agency = relationship("Agency")

    def __repr__(self):
        return f"<Commission(id={self.id}, client_id={self.client_id}, agency_id={self.agency_id}, month='{self.month}', status='{self.payment_status}')>"
