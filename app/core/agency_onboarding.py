import logging
from typing import Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import access
from app.core.exceptions import DuplicateEmail
from app.core.security import generate_password
from app.crud import crud_agency, crud_user
from app.db.session import atomic
from app.models.agency import Agency
from app.models.user import User
from app.schemas.agency import AgencyCreate

logger = logging.getLogger(__name__)

def register_agency(db: Session, *, actor: User, obj_in: AgencyCreate) -> Tuple[Agency, User, str]:
    """
    Create an agency and its operator account in one transaction.

    Operators always attach the new agency under their own; super-admins may
    pick any parent or none. The operator logs in with the agency's email and a
    generated password, which is returned here once and only stored hashed.
    """
    parent_agency_id = access.resolve_creation_parent(actor, obj_in.parent_agency_id)
    password = generate_password()

    with atomic(db):
        agency = crud_agency.create_agency(db, obj_in=obj_in, parent_agency_id=parent_agency_id)
        try:
            operator = crud_user.create_operator(db, email=agency.email, password=password, agency_id=agency.id)
        except IntegrityError as exc:
            raise DuplicateEmail(f"The email {agency.email} is already in use") from exc

    db.refresh(agency)
    logger.info(
        f"Created agency ID: {agency.id} under parent {parent_agency_id} with operator user ID: {operator.id} "
        f"(requested by user ID: {actor.id})"
    )
    return agency, operator, password
