import logging
from collections import defaultdict, deque
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateEmail, HasChildren, InvalidParent, NotFound
from app.db.session import atomic
from app.models.agency import Agency
from app.models.client import ReferredClient, STATUS_ENROLLED
from app.models.commission import Commission, PAYMENT_PENDING
from app.models.user import User
from app.schemas.agency import AgencyBase, AgencyUpdate

logger = logging.getLogger(__name__)

def get_agency(db: Session, agency_id: int) -> Optional[Agency]:
    return db.query(Agency).filter(Agency.id == agency_id).first()

def email_in_use(db: Session, email: str, *, exclude_agency_id: Optional[int] = None) -> bool:
    """
    Agency emails double as operator login emails, so a collision with either
    table counts.
    """
    agency_query = db.query(Agency.id).filter(Agency.email == email)
    if exclude_agency_id is not None:
        agency_query = agency_query.filter(Agency.id != exclude_agency_id)
        user_query = db.query(User.id).filter(
            User.email == email,
            or_(User.agency_id.is_(None), User.agency_id != exclude_agency_id),
        )
    else:
        user_query = db.query(User.id).filter(User.email == email)
    return agency_query.first() is not None or user_query.first() is not None

def create_agency(db: Session, *, obj_in: AgencyBase, parent_agency_id: Optional[int]) -> Agency:
    """
    Insert a new agency under `parent_agency_id` (None makes a root).
    Flushes but does not commit; callers own the unit of work.
    """
    if parent_agency_id is not None and get_agency(db, parent_agency_id) is None:
        raise InvalidParent(f"Parent agency {parent_agency_id} does not exist")
    if email_in_use(db, obj_in.email):
        raise DuplicateEmail(f"The email {obj_in.email} is already in use")

    db_obj = Agency(
        name=obj_in.name,
        email=obj_in.email,
        phone=obj_in.phone,
        parent_agency_id=parent_agency_id,
    )
    db.add(db_obj)
    try:
        db.flush()
    except IntegrityError as exc:
        raise DuplicateEmail(f"The email {obj_in.email} is already in use") from exc
    return db_obj

def update_agency(db: Session, *, agency_id: int, obj_in: AgencyUpdate) -> Agency:
    with atomic(db):
        db_obj = get_agency(db, agency_id)
        if db_obj is None:
            raise NotFound("Agency not found")
        if obj_in.email != db_obj.email and email_in_use(db, obj_in.email, exclude_agency_id=agency_id):
            raise DuplicateEmail(f"The email {obj_in.email} is already in use")

        update_data = obj_in.model_dump()
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateEmail(f"The email {obj_in.email} is already in use") from exc
    db.refresh(db_obj)
    logger.info(f"Updated agency ID: {agency_id}")
    return db_obj

def delete_agency(db: Session, *, agency_id: int) -> None:
    """
    Delete a leaf agency together with its users, clients and their commissions.
    Agencies that still have children are never deleted.
    """
    with atomic(db):
        db_obj = get_agency(db, agency_id)
        if db_obj is None:
            raise NotFound("Agency not found")
        child_count = db.query(Agency).filter(Agency.parent_agency_id == agency_id).count()
        if child_count:
            raise HasChildren(f"Agency {agency_id} still has {child_count} sub-agencies")
        db.delete(db_obj)
    logger.info(f"Deleted agency ID: {agency_id}")

def get_agency_summary(db: Session, agency_id: int) -> Dict[str, object]:
    """
    Client and commission totals of this one agency, sub-agencies excluded.
    Unscoped; callers check access to the agency first.
    """
    total_clients, enrolled_clients = (
        db.query(
            func.count(ReferredClient.id),
            func.coalesce(func.sum(case((ReferredClient.status == STATUS_ENROLLED, 1), else_=0)), 0),
        )
        .filter(ReferredClient.agency_id == agency_id)
        .one()
    )
    total_commissions, pending_commissions = (
        db.query(
            func.coalesce(func.sum(Commission.amount), 0),
            func.coalesce(
                func.sum(case((Commission.payment_status == PAYMENT_PENDING, Commission.amount), else_=0)), 0
            ),
        )
        .filter(Commission.agency_id == agency_id)
        .one()
    )
    return {
        "total_clients": total_clients,
        "enrolled_clients": enrolled_clients,
        "total_commissions": Decimal(total_commissions),
        "pending_commissions": Decimal(pending_commissions),
    }

def get_child_ids(db: Session, parent_ids: Iterable[int]) -> List[int]:
    parent_ids = list(parent_ids)
    if not parent_ids:
        return []
    rows = db.query(Agency.id).filter(Agency.parent_agency_id.in_(parent_ids)).all()
    return [row.id for row in rows]

def subtree_ids(db: Session, root_id: int) -> Set[int]:
    """
    Ids of `root_id` and all of its descendants, one query per tree level.
    Returns an empty set when the root does not exist.
    """
    if db.query(Agency.id).filter(Agency.id == root_id).first() is None:
        return set()

    visited: Set[int] = set()
    frontier = [root_id]
    while frontier:
        visited.update(frontier)
        frontier = [child_id for child_id in get_child_ids(db, frontier) if child_id not in visited]
    return visited

def ancestor_chain(db: Session, agency_id: int) -> List[Agency]:
    """
    The agency followed by its parent, grandparent and so on up to its root.
    Empty when the agency does not exist.
    """
    chain: List[Agency] = []
    seen: Set[int] = set()
    current = get_agency(db, agency_id)
    while current is not None:
        if current.id in seen:
            logger.error(f"Cycle detected in agency tree at agency ID: {current.id} (walking up from {agency_id})")
            break
        seen.add(current.id)
        chain.append(current)
        if current.parent_agency_id is None:
            break
        current = get_agency(db, current.parent_agency_id)
    return chain

def get_agency_tree(db: Session, *, root_ids: Optional[Iterable[int]] = None) -> List[Tuple[Agency, int]]:
    """
    Flattened forest below `root_ids` as (agency, level) pairs, roots at level 0,
    ordered by level then name. With no roots given, every root agency is used.
    """
    if root_ids is None:
        agencies = db.query(Agency).all()
        root_ids = [a.id for a in agencies if a.parent_agency_id is None]
    else:
        root_ids = list(root_ids)
        member_ids: Set[int] = set()
        for root_id in root_ids:
            member_ids |= subtree_ids(db, root_id)
        agencies = db.query(Agency).filter(Agency.id.in_(sorted(member_ids))).all() if member_ids else []

    by_id: Dict[int, Agency] = {a.id: a for a in agencies}
    children: Dict[int, List[int]] = defaultdict(list)
    for agency in agencies:
        if agency.parent_agency_id is not None:
            children[agency.parent_agency_id].append(agency.id)

    levels: Dict[int, int] = {}
    queue = deque((root_id, 0) for root_id in root_ids if root_id in by_id)
    while queue:
        node_id, level = queue.popleft()
        if node_id in levels:
            continue
        levels[node_id] = level
        queue.extend((child_id, level + 1) for child_id in children[node_id])

    return sorted(
        ((by_id[node_id], level) for node_id, level in levels.items()),
        key=lambda pair: (pair[1], pair[0].name),
    )
