import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from app.core import access
from app.core.exceptions import AgencyRequired, ConcurrentModification, DuplicateClient, NotFound
from app.crud import crud_agency
from app.db.session import atomic
from app.models.client import ReferredClient, STATUS_PENDING
from app.models.user import User
from app.schemas.client import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)

def get_client(db: Session, client_id: int) -> Optional[ReferredClient]:
    """Unscoped lookup, for internal use only."""
    return db.query(ReferredClient).filter(ReferredClient.id == client_id).first()

def _check_unique(db: Session, *, email: Optional[str], phone: Optional[str], exclude_id: Optional[int] = None) -> None:
    conditions = []
    if email is not None:
        conditions.append(ReferredClient.email == email)
    if phone is not None:
        conditions.append(ReferredClient.phone == phone)
    if not conditions:
        return
    query = db.query(ReferredClient.id).filter(or_(*conditions))
    if exclude_id is not None:
        query = query.filter(ReferredClient.id != exclude_id)
    if query.first() is not None:
        raise DuplicateClient("A client with this email or phone already exists")

def create_client(db: Session, *, actor: User, obj_in: ClientCreate) -> ReferredClient:
    """
    Register a referred client in state "pending". Operators always register
    for their own agency; super-admins must name the agency they act for.
    """
    if access.is_admin(actor):
        if obj_in.agency_id is None:
            raise AgencyRequired("agency_id is required when registering a client as administrator")
        if crud_agency.get_agency(db, obj_in.agency_id) is None:
            raise NotFound("Agency not found")
        agency_id = obj_in.agency_id
    else:
        agency_id = actor.agency_id

    with atomic(db):
        _check_unique(db, email=obj_in.email, phone=obj_in.phone)
        db_obj = ReferredClient(
            name=obj_in.name,
            email=obj_in.email,
            phone=obj_in.phone,
            notes=obj_in.notes,
            status=STATUS_PENDING,
            agency_id=agency_id,
        )
        db.add(db_obj)
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateClient("A client with this email or phone already exists") from exc
    db.refresh(db_obj)
    logger.info(f"Registered client ID: {db_obj.id} for agency ID: {agency_id} by user ID: {actor.id}")
    return db_obj

def get_client_for_actor(db: Session, *, actor: User, client_id: int) -> ReferredClient:
    """
    Fetch a client and check it lies in the actor's subtree. A client outside
    the subtree is reported exactly like a missing one.
    """
    db_obj = (
        db.query(ReferredClient)
        .options(joinedload(ReferredClient.agency))
        .filter(ReferredClient.id == client_id)
        .first()
    )
    if db_obj is None:
        raise NotFound("Client not found")
    access.ensure_access(db, actor, db_obj.agency_id, label="Client")
    return db_obj

def get_clients(
    db: Session,
    *,
    actor: User,
    agency_id: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100
) -> List[ReferredClient]:
    """
    Clients visible to the actor, newest first. `agency_id` narrows the result
    to that agency's subtree and must itself be visible.
    """
    scope = access.resolve_scope(db, actor, agency_id)

    query = access.apply_scope(db.query(ReferredClient), ReferredClient.agency_id, scope)
    if status:
        query = query.filter(ReferredClient.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            ReferredClient.name.ilike(pattern),
            ReferredClient.email.ilike(pattern),
            ReferredClient.phone.ilike(pattern),
        ))
    return query.order_by(ReferredClient.created_at.desc(), ReferredClient.id.desc()).offset(skip).limit(limit).all()

def update_client(db: Session, *, actor: User, client_id: int, obj_in: ClientUpdate) -> ReferredClient:
    """Edit contact details and notes. Agency and status are not editable here."""
    update_data = obj_in.model_dump(exclude_unset=True)
    with atomic(db):
        db_obj = get_client_for_actor(db, actor=actor, client_id=client_id)
        _check_unique(
            db,
            email=update_data.get("email"),
            phone=update_data.get("phone"),
            exclude_id=db_obj.id,
        )
        for field, value in update_data.items():
            if value is None and field != "notes":
                continue
            setattr(db_obj, field, value)
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateClient("A client with this email or phone already exists") from exc
        except StaleDataError as exc:
            raise ConcurrentModification(f"Client {client_id} was modified concurrently, retry the update") from exc
    db.refresh(db_obj)
    logger.info(f"Updated client ID: {client_id} by user ID: {actor.id}")
    return db_obj

def delete_client(db: Session, *, actor: User, client_id: int) -> None:
    access.require_admin(actor, "delete clients")
    with atomic(db):
        db_obj = get_client_for_actor(db, actor=actor, client_id=client_id)
        db.delete(db_obj)
        try:
            db.flush()
        except StaleDataError as exc:
            raise ConcurrentModification(f"Client {client_id} was modified concurrently, retry the delete") from exc
    logger.info(f"Deleted client ID: {client_id} and its commissions")
