from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.db.base_class import Base

class Agency(Base):
    __tablename__ = "agency"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    start_date = Column(Date, server_default=func.current_date(), nullable=False)
    # Nullable parent reference; root agencies have none. Children are looked up by
    # this column (see crud_agency.subtree_ids), never through object back-pointers.
    parent_agency_id = Column(Integer, ForeignKey("agency.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Dependent leaf entities; child agencies are deliberately not cascaded
    users = relationship("User", back_populates="agency", cascade="all, delete-orphan")
    clients = relationship("ReferredClient", back_populates="agency", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Agency(id={self.id}, name='{self.name}', parent_agency_id={self.parent_agency_id})>"
