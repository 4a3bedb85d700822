from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

class AgencyBase(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None

class AgencyCreate(AgencyBase):
    # Honoured for super-admins only; operators always create children of their own agency
    parent_agency_id: Optional[int] = None

class AgencyUpdate(AgencyBase):
    """Full replacement of the editable fields. The parent is never changed."""
    pass

class AgencyInDBBase(AgencyBase):
    id: int
    parent_agency_id: Optional[int] = None
    start_date: date
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class Agency(AgencyInDBBase):
    pass

class AgencyTreeNode(Agency):
    level: int # 0 for the root of the returned tree

class AgencyCreated(Agency):
    """Returned once, right after onboarding. The password is not stored in clear anywhere."""
    operator_email: EmailStr
    generated_password: str

class AgencyDetail(Agency):
    """An agency with totals for its own clients and commissions (sub-agencies excluded)."""
    total_clients: int
    enrolled_clients: int
    total_commissions: Decimal
    pending_commissions: Decimal
