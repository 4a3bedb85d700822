from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import date, datetime

class ClientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None

class ClientCreate(ClientBase):
    # Required when a super-admin registers a client on behalf of an agency; ignored for operators
    agency_id: Optional[int] = None

class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=50)
    notes: Optional[str] = None

class ClientStatusUpdate(BaseModel):
    # Validated by the lifecycle engine so unknown values surface as InvalidTransition
    status: str

class Client(ClientBase):
    id: int
    status: str
    agency_id: int
    enrollment_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
