import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
import uuid
from decimal import Decimal

from app.crud import crud_agency, crud_user
from app.core.commission_lifecycle import transition_client_status
from tests.conftest import create_referred_client, get_token_headers

pytestmark = pytest.mark.api

def _agency_payload(name: str, parent_agency_id=None) -> dict:
    return {
        "name": name,
        "email": f"{name.lower().replace(' ', '_')}_{uuid.uuid4().hex[:6]}@example.com",
        "phone": "555-0100",
        "parent_agency_id": parent_agency_id,
    }

def test_admin_sees_whole_forest(client: TestClient, admin_token_headers: dict, agency_tree: dict):
    response = client.get("/api/v1/agencies/tree", headers=admin_token_headers)
    assert response.status_code == 200
    nodes = [(node["id"], node["level"]) for node in response.json()]
    assert nodes == [
        (agency_tree["other_root"].id, 0),
        (agency_tree["root"].id, 0),
        (agency_tree["child"].id, 1),
        (agency_tree["child_sibling"].id, 1),
        (agency_tree["grandchild"].id, 2),
    ]

def test_operator_tree_starts_at_home_agency(client: TestClient, child_operator_headers: dict, agency_tree: dict):
    response = client.get("/api/v1/agencies/tree", headers=child_operator_headers)
    assert response.status_code == 200
    data = response.json()
    assert [(node["id"], node["level"]) for node in data] == [
        (agency_tree["child"].id, 0),
        (agency_tree["grandchild"].id, 1),
    ]
    assert data[1]["parent_agency_id"] == agency_tree["child"].id

def test_tree_requires_authentication(client: TestClient):
    response = client.get("/api/v1/agencies/tree")
    assert response.status_code == 401

def test_read_agency_downward(client: TestClient, root_operator_headers: dict, agency_tree: dict):
    response = client.get(f"/api/v1/agencies/{agency_tree['grandchild'].id}", headers=root_operator_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Grandchild"

@pytest.mark.parametrize("target", ["root", "child_sibling", "other_root"])
def test_read_agency_upward_or_sideways_is_not_found(
    client: TestClient, child_operator_headers: dict, agency_tree: dict, target: str
):
    response = client.get(f"/api/v1/agencies/{agency_tree[target].id}", headers=child_operator_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Agency not found"

def test_read_missing_agency_is_not_found(client: TestClient, admin_token_headers: dict):
    response = client.get("/api/v1/agencies/99999", headers=admin_token_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Agency not found"

def test_admin_creates_root_agency(client: TestClient, admin_token_headers: dict):
    payload = _agency_payload("Fresh Root")
    response = client.post("/api/v1/agencies/", headers=admin_token_headers, json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["parent_agency_id"] is None
    assert data["operator_email"] == payload["email"]
    assert len(data["generated_password"]) >= 12

def test_admin_creates_child_under_any_parent(client: TestClient, admin_token_headers: dict, agency_tree: dict):
    payload = _agency_payload("Deep", parent_agency_id=agency_tree["grandchild"].id)
    response = client.post("/api/v1/agencies/", headers=admin_token_headers, json=payload)
    assert response.status_code == 201
    assert response.json()["parent_agency_id"] == agency_tree["grandchild"].id

def test_admin_create_with_missing_parent_fails(client: TestClient, admin_token_headers: dict):
    response = client.post("/api/v1/agencies/", headers=admin_token_headers, json=_agency_payload("Orphan", 4242))
    assert response.status_code == 400

def test_create_with_duplicate_email_fails(client: TestClient, admin_token_headers: dict, agency_tree: dict):
    payload = _agency_payload("Copycat")
    payload["email"] = agency_tree["root"].email
    response = client.post("/api/v1/agencies/", headers=admin_token_headers, json=payload)
    assert response.status_code == 400
    assert "already in use" in response.json()["detail"]

def test_operator_created_agency_is_forced_under_home(
    client: TestClient, db_session: Session, child_operator_headers: dict, agency_tree: dict
):
    # The requested parent is ignored for operators
    payload = _agency_payload("Sub Agency", parent_agency_id=agency_tree["other_root"].id)
    response = client.post("/api/v1/agencies/", headers=child_operator_headers, json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["parent_agency_id"] == agency_tree["child"].id

    operator = crud_user.get_user_by_email(db_session, data["operator_email"])
    assert operator.role == "agency"
    assert operator.agency_id == data["id"]
    assert operator.hashed_password != data["generated_password"]

    # The new operator can log in with the generated password and sees only its own agency
    headers = get_token_headers(client, data["operator_email"], data["generated_password"])
    tree = client.get("/api/v1/agencies/tree", headers=headers).json()
    assert [(node["id"], node["level"]) for node in tree] == [(data["id"], 0)]

    # ... and the creator now sees it one level down
    child_tree = client.get("/api/v1/agencies/tree", headers=child_operator_headers).json()
    assert (data["id"], 1) in [(node["id"], node["level"]) for node in child_tree]

def test_update_agency_is_admin_only(
    client: TestClient, admin_token_headers: dict, child_operator_headers: dict, agency_tree: dict
):
    child = agency_tree["child"]
    body = {"name": "Child Renamed", "email": child.email, "phone": "555-0111"}

    response = client.put(f"/api/v1/agencies/{child.id}", headers=child_operator_headers, json=body)
    assert response.status_code == 403

    response = client.put(f"/api/v1/agencies/{child.id}", headers=admin_token_headers, json=body)
    assert response.status_code == 200
    assert response.json()["name"] == "Child Renamed"
    assert response.json()["parent_agency_id"] == agency_tree["root"].id

def test_delete_agency_with_children_conflicts(client: TestClient, admin_token_headers: dict, agency_tree: dict):
    response = client.delete(f"/api/v1/agencies/{agency_tree['child'].id}", headers=admin_token_headers)
    assert response.status_code == 409
    assert "sub-agencies" in response.json()["detail"]

def test_delete_leaf_agency(client: TestClient, db_session: Session, admin_token_headers: dict, admin_user, agency_tree: dict):
    sibling_id = agency_tree["child_sibling"].id
    create_referred_client(db_session, admin_user, agency_id=sibling_id)

    response = client.delete(f"/api/v1/agencies/{sibling_id}", headers=admin_token_headers)
    assert response.status_code == 200
    db_session.expire_all()
    assert crud_agency.get_agency(db_session, sibling_id) is None

    response = client.get(f"/api/v1/agencies/{sibling_id}", headers=admin_token_headers)
    assert response.status_code == 404

def test_delete_agency_as_operator_is_forbidden(client: TestClient, root_operator_headers: dict, agency_tree: dict):
    response = client.delete(f"/api/v1/agencies/{agency_tree['grandchild'].id}", headers=root_operator_headers)
    assert response.status_code == 403

def test_read_agency_includes_totals(
    client: TestClient, db_session: Session, admin_user, root_operator_headers: dict, agency_tree: dict
):
    child_id = agency_tree["child"].id
    enrolled = create_referred_client(db_session, admin_user, agency_id=child_id)
    create_referred_client(db_session, admin_user, agency_id=child_id)
    transition_client_status(db_session, actor=admin_user, client_id=enrolled.id, new_status="enrolled")

    response = client.get(f"/api/v1/agencies/{child_id}", headers=root_operator_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total_clients"] == 2
    assert data["enrolled_clients"] == 1
    assert Decimal(data["total_commissions"]) == Decimal("500")
    assert Decimal(data["pending_commissions"]) == Decimal("500")

def test_admin_only_route_reports_missing_role(client: TestClient, child_operator_headers: dict, agency_tree: dict):
    response = client.delete(f"/api/v1/agencies/{agency_tree['grandchild'].id}", headers=child_operator_headers)
    assert response.status_code == 403
    assert response.json()["detail"].startswith("Only administrators may")
