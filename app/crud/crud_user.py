from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from typing import Optional

from app.models.user import User, ROLE_ADMIN, ROLE_AGENCY
from app.core.security import get_password_hash

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()

def create_operator(db: Session, *, email: str, password: str, agency_id: int) -> User:
    """
    Add an agency-scoped user. Flushes only; the caller commits together with
    whatever created the agency.
    """
    db_obj = User(
        email=email,
        hashed_password=get_password_hash(password),
        role=ROLE_AGENCY,
        agency_id=agency_id,
        is_active=True,
    )
    db.add(db_obj)
    db.flush()
    return db_obj

def create_superuser(db: Session, *, email: str, password: str) -> User:
    db_obj = User(
        email=email,
        hashed_password=get_password_hash(password),
        role=ROLE_ADMIN,
        agency_id=None,
        is_active=True,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def record_login(db: Session, *, db_obj: User) -> User:
    db_obj.last_login = func.now()
    db.commit()
    db.refresh(db_obj)
    return db_obj
