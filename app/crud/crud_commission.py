from sqlalchemy.orm import Session, joinedload
from typing import Optional, List

from app.core import access
from app.core.exceptions import NotFound
from app.models.commission import Commission
from app.models.user import User

def get_commission(db: Session, commission_id: int) -> Optional[Commission]:
    """
    Get a single commission by ID with its client eagerly loaded. Unscoped.
    """
    return (
        db.query(Commission)
        .options(joinedload(Commission.client))
        .filter(Commission.id == commission_id)
        .first()
    )

def get_commission_for_actor(db: Session, *, actor: User, commission_id: int) -> Commission:
    """
    Fetch a commission the actor may see. Out-of-scope commissions are reported
    as missing.
    """
    db_commission = get_commission(db, commission_id)
    if db_commission is None:
        raise NotFound("Commission not found")
    access.ensure_access(db, actor, db_commission.agency_id, label="Commission")
    return db_commission

def get_commissions(
    db: Session,
    *,
    actor: User,
    agency_id: Optional[int] = None,
    client_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    month: Optional[str] = None,
    skip: int = 0,
    limit: int = 100
) -> List[Commission]:
    """
    Commissions visible to the actor, newest first, optionally filtered.
    `agency_id` narrows to that agency's subtree and must itself be visible.
    """
    scope = access.resolve_scope(db, actor, agency_id)

    query = access.apply_scope(
        db.query(Commission).options(joinedload(Commission.client)),
        Commission.agency_id,
        scope,
    )
    if client_id is not None:
        query = query.filter(Commission.client_id == client_id)
    if payment_status:
        query = query.filter(Commission.payment_status == payment_status)
    if month:
        query = query.filter(Commission.month == month)

    return query.order_by(Commission.created_at.desc(), Commission.id.desc()).offset(skip).limit(limit).all()

def get_commission_by_client_month(db: Session, *, client_id: int, month: str) -> Optional[Commission]:
    return (
        db.query(Commission)
        .filter(Commission.client_id == client_id, Commission.month == month)
        .first()
    )

def get_commissions_by_client(db: Session, *, client_id: int) -> List[Commission]:
    """
    Every commission ever raised for a client, oldest first. Unscoped.
    """
    return (
        db.query(Commission)
        .filter(Commission.client_id == client_id)
        .order_by(Commission.month.asc(), Commission.id.asc())
        .all()
    )
