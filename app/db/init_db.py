import logging

from sqlalchemy.orm import Session

from app.core.config import FIRST_SUPERUSER_EMAIL, FIRST_SUPERUSER_PASSWORD
from app.crud import crud_user
from app.db import base # noqa: F401 - registers every model on Base.metadata
from app.db.base_class import Base
from app.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

def init_db(db: Session) -> None:
    """Create missing tables and the first super-admin."""
    Base.metadata.create_all(bind=db.get_bind())

    user = crud_user.get_user_by_email(db, email=FIRST_SUPERUSER_EMAIL)
    if user is None:
        user = crud_user.create_superuser(db, email=FIRST_SUPERUSER_EMAIL, password=FIRST_SUPERUSER_PASSWORD)
        logger.info(f"Created super-admin {user.email}")
    else:
        logger.info(f"Super-admin {user.email} already exists")

def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger.info(f"Initialising database at {engine.url!r}")
    db = SessionLocal()
    try:
        init_db(db)
    finally:
        db.close()

if __name__ == "__main__":
    main()
