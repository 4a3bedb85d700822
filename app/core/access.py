"""
Single source of truth for tree-scoped authorization.

Every question of the form "may this actor touch agency T" or "which agencies
may this actor see" is answered here. Callers never walk the agency tree
themselves.
"""
import logging
from typing import Optional, Set, Union

from sqlalchemy.orm import Query, Session

from app.core.exceptions import AccessDenied, NotFound, Unauthorized
from app.crud import crud_agency
from app.models.user import User, ROLE_ADMIN

logger = logging.getLogger(__name__)


class _AllAgencies:
    """Scope of a super-admin. Contains every agency id without listing them."""

    def __contains__(self, agency_id) -> bool:
        return True

    def __repr__(self):
        return "ALL_AGENCIES"


ALL_AGENCIES = _AllAgencies()

AgencyScope = Union[_AllAgencies, Set[int]]


def is_admin(actor: User) -> bool:
    return actor.role == ROLE_ADMIN


def require_admin(actor: User, action: str) -> None:
    if not is_admin(actor):
        logger.warning(f"User ID: {actor.id} (role {actor.role}) attempted admin-only action: {action}")
        raise Unauthorized(f"Only administrators may {action}")


def authorized_agency_ids(db: Session, actor: User) -> AgencyScope:
    if is_admin(actor):
        return ALL_AGENCIES
    return crud_agency.subtree_ids(db, actor.agency_id)


def can_access(db: Session, actor: User, agency_id: int) -> bool:
    """
    True when `agency_id` is the actor's home agency or one of its descendants.
    Walks up from the target, which touches depth-many rows instead of the
    whole subtree.
    """
    if is_admin(actor):
        return True
    if actor.agency_id is None:
        return False
    return any(agency.id == actor.agency_id for agency in crud_agency.ancestor_chain(db, agency_id))


def ensure_access(db: Session, actor: User, agency_id: int, label: str = "Agency") -> None:
    if not can_access(db, actor, agency_id):
        logger.warning(f"User ID: {actor.id} denied access to {label.lower()} owned by agency ID: {agency_id}")
        raise AccessDenied(f"{label} not found")


def resolve_creation_parent(actor: User, requested_parent_id: Optional[int]) -> Optional[int]:
    """Operators can only grow their own node; super-admins attach anywhere, or create roots."""
    if is_admin(actor):
        return requested_parent_id
    if requested_parent_id is not None and requested_parent_id != actor.agency_id:
        logger.info(
            f"Ignoring requested parent {requested_parent_id} from user ID: {actor.id}; "
            f"using home agency {actor.agency_id}"
        )
    return actor.agency_id


def resolve_scope(db: Session, actor: User, agency_id: Optional[int] = None) -> AgencyScope:
    """
    Scope for a list query. With `agency_id` it is that agency's subtree, which
    must exist and be visible to the actor; otherwise the actor's whole scope.
    """
    if agency_id is None:
        return authorized_agency_ids(db, actor)
    if crud_agency.get_agency(db, agency_id) is None:
        raise NotFound("Agency not found")
    ensure_access(db, actor, agency_id)
    return crud_agency.subtree_ids(db, agency_id)


def apply_scope(query: Query, column, scope: AgencyScope) -> Query:
    if scope is ALL_AGENCIES:
        return query
    return query.filter(column.in_(sorted(scope)))
