import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from app.core.config import SQLALCHEMY_DATABASE_URI

logger = logging.getLogger(__name__)

def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores ON DELETE rules unless the pragma is set on every connection."""
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Determine if we are using SQLite
is_sqlite = SQLALCHEMY_DATABASE_URI.startswith("sqlite")

connect_args = {}
if is_sqlite:
    connect_args = {"check_same_thread": False}

engine = create_engine(SQLALCHEMY_DATABASE_URI, pool_pre_ping=True, connect_args=connect_args)
if is_sqlite:
    enable_sqlite_foreign_keys(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def atomic(db: Session):
    """
    Run a block as one unit of work: commit when it finishes, roll back and
    re-raise if anything inside it fails.
    """
    try:
        yield db
        db.commit()
    except Exception as exc:
        logger.warning(f"Rolling back unit of work: {exc!r}")
        db.rollback()
        raise
