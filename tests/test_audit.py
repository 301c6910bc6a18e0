"""
Tests for the audit trail endpoint.
"""

from fastapi.testclient import TestClient
from evidence_engine.main import app

from tests.helpers import create_employee, create_period, create_user


def test_list_audit_events_after_initialize(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", is_admin=True)
    emp = create_employee(db_session, "E1", "Emp", user=create_user(db_session, "emp@local.test"))
    period = create_period(db_session, created_by=admin)

    client = TestClient(app)
    r = client.post(f"/periods/{period.id}/initialize", headers={"X-User-Email": "admin@local.test"})
    evaluation_id = r.json()["created_evaluation_ids"][0]

    r = client.get(
        "/audit",
        headers={"X-User-Email": "admin@local.test"},
        params={"entity_type": "evaluation", "entity_id": evaluation_id},
    )
    assert r.status_code == 200
    actions = {e["action"] for e in r.json()}
    assert actions == {"EVALUATION_TRANSITIONED", "EVALUATION_CREATED", "EVIDENCE_AGGREGATED"}
    assert all(e["actor_user_id"] == admin.id for e in r.json())

    created = next(e for e in r.json() if e["action"] == "EVALUATION_CREATED")
    assert created["metadata"]["employee_id"] == emp.id


def test_filter_by_action(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", is_admin=True)
    create_employee(db_session, "E1", "Emp")
    create_employee(db_session, "E2", "Emp 2")
    period = create_period(db_session, created_by=admin)

    client = TestClient(app)
    client.post(f"/periods/{period.id}/initialize", headers={"X-User-Email": "admin@local.test"})

    r = client.get(
        "/audit",
        headers={"X-User-Email": "admin@local.test"},
        params={"action": "EVALUATION_CREATED", "limit": 1},
    )
    assert r.status_code == 200
    assert len(r.json()) == 1


def test_list_audit_events_requires_admin(db_session):
    create_user(db_session, "user@local.test", "User")
    client = TestClient(app)

    response = client.get(
        "/audit",
        headers={"X-User-Email": "user@local.test"},
    )
    assert response.status_code == 403


def test_inactive_user_is_rejected(db_session):
    u = create_user(db_session, "old@local.test", "Old", is_admin=True)
    u.is_active = False
    db_session.commit()

    client = TestClient(app)
    r = client.get("/audit", headers={"X-User-Email": "old@local.test"})
    assert r.status_code == 401
