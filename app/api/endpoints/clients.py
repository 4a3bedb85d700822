from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.commission_lifecycle import transition_client_status
from app.core.dependencies import get_current_active_user, get_current_active_superuser
from app.crud import crud_client
from app.db.session import get_db
from app.models.user import User
from app.schemas.client import Client, ClientCreate, ClientUpdate, ClientStatusUpdate
from app.schemas.commission import ClientStatusChange

router = APIRouter()

@router.get("/", response_model=List[Client])
def read_clients(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    agency_id: Optional[int] = Query(None, description="Limit to this agency and its sub-agencies"),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches name, email or phone"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200)
):
    """
    Clients of the current user's agency and its sub-agencies (all clients for administrators).
    """
    return crud_client.get_clients(
        db, actor=current_user, agency_id=agency_id, status=status, search=search, skip=skip, limit=limit
    )

@router.get("/{client_id}", response_model=Client)
def read_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud_client.get_client_for_actor(db, actor=current_user, client_id=client_id)

@router.post("/", response_model=Client, status_code=201)
def register_client(
    client_in: ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Register a referred client. Operators register for their own agency;
    administrators must pass `agency_id`.
    """
    return crud_client.create_client(db, actor=current_user, obj_in=client_in)

@router.put("/{client_id}", response_model=Client)
def update_client(
    client_id: int,
    client_in: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud_client.update_client(db, actor=current_user, client_id=client_id, obj_in=client_in)

@router.patch("/{client_id}/status", response_model=ClientStatusChange)
def update_client_status(
    client_id: int,
    status_in: ClientStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    """
    Admin: set a client's enrolment status. Entering "enrolled" raises this
    month's commission for the client's agency.
    """
    client, commission = transition_client_status(
        db, actor=current_user, client_id=client_id, new_status=status_in.status
    )
    return {"client": client, "commission": commission}

@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    crud_client.delete_client(db, actor=current_user, client_id=client_id)
    return {"message": "Client deleted successfully"}
