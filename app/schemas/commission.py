from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from .client import Client

class CommissionPay(BaseModel):
    payment_notes: Optional[str] = None

class Commission(BaseModel):
    """Full schema for returning commission data to the client."""
    id: int
    amount: Decimal
    month: str
    payment_status: str
    client_id: int
    agency_id: int
    paid_at: Optional[datetime] = None
    payment_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ClientStatusChange(BaseModel):
    """Result of a status transition: the client plus the commission it created, if any."""
    client: Client
    commission: Optional[Commission] = None
