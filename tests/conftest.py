import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient
import os
import uuid

# Add project root to sys.path to allow imports from app
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


from app.main import app
from app.db import base # noqa: F401 - registers every model on Base.metadata
from app.db.base_class import Base
from app.db.session import get_db, enable_sqlite_foreign_keys
from app.core.agency_onboarding import register_agency
from app.crud import crud_client, crud_user
from app.models.client import ReferredClient as ReferredClientModel
from app.models.user import User as UserModel
from app.schemas.agency import AgencyCreate
from app.schemas.client import ClientCreate

# Use a separate SQLite database for testing
TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.create_all(bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="session")
def test_engine():
    Base.metadata.create_all(bind=engine)
    yield engine

@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Provides a database session for each test function, on freshly
    recreated tables so tests never see each other's rows.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture(scope="function")
def client():
    # The TestClient uses the app with the overridden get_db dependency
    with TestClient(app) as c:
        yield c


# Helpers for building agency trees

def create_agency(db: Session, actor: UserModel, name: str, parent_agency_id=None):
    """Onboard an agency as `actor`. Returns (agency, operator, generated_password)."""
    agency_in = AgencyCreate(
        name=name,
        email=f"{name.lower().replace(' ', '_')}_{uuid.uuid4().hex[:6]}@example.com",
        phone=None,
        parent_agency_id=parent_agency_id,
    )
    return register_agency(db, actor=actor, obj_in=agency_in)

def create_referred_client(db: Session, actor: UserModel, agency_id=None, name: str = "Client") -> ReferredClientModel:
    suffix = uuid.uuid4().hex[:8]
    client_in = ClientCreate(
        name=name,
        email=f"client_{suffix}@example.com",
        phone=f"+1555{int(suffix, 16) % 10_000_000:07d}",
        agency_id=agency_id,
    )
    return crud_client.create_client(db, actor=actor, obj_in=client_in)

def get_token_headers(client: TestClient, email: str, password: str) -> dict:
    response = client.post("/api/v1/auth/login", data={"username": email, "password": password})
    if response.status_code != 200:
        raise Exception(f"Failed to log in user {email} during fixture setup. Status: {response.status_code}, Detail: {response.text}")
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


ADMIN_PASSWORD = "admin-password-123"

@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> UserModel:
    return crud_user.create_superuser(db_session, email=f"admin_{uuid.uuid4().hex[:6]}@example.com", password=ADMIN_PASSWORD)

@pytest.fixture(scope="function")
def agency_tree(db_session: Session, admin_user: UserModel) -> dict:
    """
    Two trees:

        root ─┬─ child ── grandchild
              └─ child_sibling
        other_root
    """
    root, root_operator, root_password = create_agency(db_session, admin_user, "Root")
    child, child_operator, child_password = create_agency(db_session, admin_user, "Child", parent_agency_id=root.id)
    grandchild, grandchild_operator, _ = create_agency(db_session, admin_user, "Grandchild", parent_agency_id=child.id)
    child_sibling, _, _ = create_agency(db_session, admin_user, "Child Sibling", parent_agency_id=root.id)
    other_root, other_operator, _ = create_agency(db_session, admin_user, "Other Root")
    return {
        "root": root,
        "child": child,
        "grandchild": grandchild,
        "child_sibling": child_sibling,
        "other_root": other_root,
        "root_operator": root_operator,
        "root_password": root_password,
        "child_operator": child_operator,
        "child_password": child_password,
        "grandchild_operator": grandchild_operator,
        "other_operator": other_operator,
    }

@pytest.fixture(scope="function")
def admin_token_headers(client: TestClient, admin_user: UserModel) -> dict:
    return get_token_headers(client, admin_user.email, ADMIN_PASSWORD)

@pytest.fixture(scope="function")
def root_operator_headers(client: TestClient, agency_tree: dict) -> dict:
    return get_token_headers(client, agency_tree["root_operator"].email, agency_tree["root_password"])

@pytest.fixture(scope="function")
def child_operator_headers(client: TestClient, agency_tree: dict) -> dict:
    return get_token_headers(client, agency_tree["child_operator"].email, agency_tree["child_password"])
