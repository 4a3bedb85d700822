from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base

STATUS_PENDING = "pending"
STATUS_ENROLLED = "enrolled"
STATUS_NOT_ENROLLED = "not_enrolled"
CLIENT_STATUSES = (STATUS_PENDING, STATUS_ENROLLED, STATUS_NOT_ENROLLED)

class ReferredClient(Base):
    __tablename__ = "referred_client"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'enrolled', 'not_enrolled')", name="ck_referred_client_status"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), unique=True, index=True, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    agency_id = Column(Integer, ForeignKey("agency.id", ondelete="CASCADE"), nullable=False, index=True) # Never reassigned
    enrollment_date = Column(Date, nullable=True) # Set only while status is "enrolled"
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1) # Bumped on every UPDATE, detects lost updates
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    agency = relationship("Agency", back_populates="clients")
    commissions = relationship("Commission", back_populates="client", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ReferredClient(id={self.id}, email='{self.email}', status='{self.status}', agency_id={self.agency_id})>"
