from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.core import access
from app.core.agency_onboarding import register_agency
from app.core.dependencies import get_current_active_user, get_current_active_superuser
from app.core.exceptions import NotFound
from app.crud import crud_agency
from app.db.session import get_db
from app.models.user import User
from app.schemas.agency import Agency, AgencyCreate, AgencyCreated, AgencyDetail, AgencyTreeNode, AgencyUpdate

router = APIRouter()

@router.get("/tree", response_model=List[AgencyTreeNode])
def read_agency_tree(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    The agencies visible to the current user, each stamped with its depth.
    Administrators get the whole forest; operators get their own subtree with
    their agency at level 0.
    """
    root_ids = None if access.is_admin(current_user) else [current_user.agency_id]
    return [
        AgencyTreeNode(**Agency.model_validate(agency).model_dump(), level=level)
        for agency, level in crud_agency.get_agency_tree(db, root_ids=root_ids)
    ]

@router.get("/{agency_id}", response_model=AgencyDetail)
def read_agency(
    agency_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    An agency in the current user's subtree, with totals for its own clients and commissions.
    """
    agency = crud_agency.get_agency(db, agency_id)
    if agency is None:
        raise NotFound("Agency not found")
    access.ensure_access(db, current_user, agency_id)
    return AgencyDetail(
        **Agency.model_validate(agency).model_dump(),
        **crud_agency.get_agency_summary(db, agency_id),
    )

@router.post("/", response_model=AgencyCreated, status_code=201)
def create_agency(
    agency_in: AgencyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Create an agency and its operator login. Operators can only create
    sub-agencies of their own agency. The generated password is shown once.
    """
    agency, operator, password = register_agency(db, actor=current_user, obj_in=agency_in)
    return AgencyCreated(
        **Agency.model_validate(agency).model_dump(),
        operator_email=operator.email,
        generated_password=password,
    )

@router.put("/{agency_id}", response_model=Agency)
def update_agency(
    agency_id: int,
    agency_in: AgencyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    return crud_agency.update_agency(db, agency_id=agency_id, obj_in=agency_in)

@router.delete("/{agency_id}")
def delete_agency(
    agency_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    """
    Delete an agency without sub-agencies, along with its users, clients and commissions.
    """
    crud_agency.delete_agency(db, agency_id=agency_id)
    return {"message": "Agency deleted successfully"}
