from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base

ROLE_ADMIN = "admin"
ROLE_AGENCY = "agency"

class User(Base):
    __tablename__ = "user"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'agency')", name="ck_user_role"),
        # Super-admins are unscoped; operators are bound to exactly one agency
        CheckConstraint(
            "(role = 'admin' AND agency_id IS NULL) OR (role = 'agency' AND agency_id IS NOT NULL)",
            name="ck_user_home_agency",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False) # "admin" or "agency"
    agency_id = Column(Integer, ForeignKey("agency.id", ondelete="CASCADE"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    agency = relationship("Agency", back_populates="users")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}', agency_id={self.agency_id})>"
