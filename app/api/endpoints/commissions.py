from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.commission_lifecycle import pay_commission
from app.core.dependencies import get_current_active_user, get_current_active_superuser
from app.crud import crud_commission
from app.db.session import get_db
from app.models.user import User
from app.schemas.commission import Commission as CommissionSchema, CommissionPay

router = APIRouter()

@router.get("/", response_model=List[CommissionSchema])
def read_commissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    agency_id: Optional[int] = Query(None, description="Limit to this agency and its sub-agencies"),
    client_id: Optional[int] = Query(None),
    payment_status: Optional[str] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="YYYY-MM"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200)
):
    """
    Commissions owed to the current user's agency and its sub-agencies (all for administrators).
    """
    return crud_commission.get_commissions(
        db,
        actor=current_user,
        agency_id=agency_id,
        client_id=client_id,
        payment_status=payment_status,
        month=month,
        skip=skip,
        limit=limit,
    )

@router.get("/{commission_id}", response_model=CommissionSchema)
def read_commission(
    commission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud_commission.get_commission_for_actor(db, actor=current_user, commission_id=commission_id)

@router.patch("/{commission_id}/pay", response_model=CommissionSchema)
def mark_commission_paid(
    commission_id: int,
    payment_in: CommissionPay,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    """
    Admin: mark a commission as paid. Paying an already paid commission changes nothing.
    """
    return pay_commission(
        db, actor=current_user, commission_id=commission_id, payment_notes=payment_in.payment_notes
    )
