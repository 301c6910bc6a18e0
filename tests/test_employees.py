from datetime import timedelta

from fastapi.testclient import TestClient

from evidence_engine.core.enums import Dimension, utcnow
from evidence_engine.main import app

from tests.helpers import add_evidence, create_employee, create_period, create_user

HEADERS = {"X-User-Email": "hr@local.test"}


def _setup(db):
    hr = create_user(db, "hr@local.test", "HR", is_admin=True)
    boss = create_employee(db, "M1", "Boss")
    emp = create_employee(db, "E1", "Alice Example", manager=boss)
    create_employee(db, "E2", "Bob Example", manager=boss, is_active=False)
    return hr, boss, emp


def test_list_and_search_employees(db_session):
    _setup(db_session)
    client = TestClient(app)

    r = client.get("/employees", headers=HEADERS)
    assert r.status_code == 200
    assert [e["display_name"] for e in r.json()] == ["Alice Example", "Bob Example", "Boss"]

    r = client.get("/employees", params={"search": "example", "active_only": True}, headers=HEADERS)
    assert [e["employee_number"] for e in r.json()] == ["E1"]


def test_get_employee(db_session):
    _, boss, emp = _setup(db_session)
    client = TestClient(app)

    r = client.get(f"/employees/{emp.id}", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["manager_id"] == boss.id

    r = client.get("/employees/999999", headers=HEADERS)
    assert r.status_code == 404


def test_workflow_status_not_started(db_session):
    hr, _, emp = _setup(db_session)
    period = create_period(db_session, created_by=hr)
    client = TestClient(app)

    r = client.get(f"/employees/{emp.id}/workflow-status", params={"period_id": period.id}, headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert body["current_phase"] == "not_started"
    assert body["evaluation_ids"] == {}

    r = client.get(f"/employees/{emp.id}/workflow-status", params={"period_id": 999999}, headers=HEADERS)
    assert r.status_code == 404

    r = client.get(f"/employees/{emp.id}/workflow-status", headers=HEADERS)
    assert r.status_code == 422


def test_evidence_quality_reports_issues(db_session):
    _, boss, emp = _setup(db_session)
    add_evidence(db_session, emp, Dimension.KPIS, [4], manager=boss)
    add_evidence(db_session, emp, Dimension.VALUES, [5], manager=boss)
    add_evidence(db_session, emp, Dimension.KPIS, [7], manager=boss)
    add_evidence(db_session, emp, "bogus", [3], manager=boss)
    add_evidence(
        db_session, emp, Dimension.KPIS, [4], manager=boss, entry_date=utcnow().date() + timedelta(days=30)
    )
    client = TestClient(app)

    r = client.get(f"/employees/{emp.id}/evidence-quality", headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert body["total_entries"] == 5
    assert body["dimensions_covered"] == 2
    assert body["unique_evaluators"] == 1
    assert body["consistent"] is False
    assert len(body["issues"]) == 3
    assert body["recency_weighted_ratings"] == {}


def test_evidence_quality_for_period(db_session):
    hr, boss, emp = _setup(db_session)
    end = utcnow().date() - timedelta(days=10)
    period = create_period(db_session, created_by=hr, start_date=end - timedelta(days=180), end_date=end)
    add_evidence(db_session, emp, Dimension.KPIS, [4, 4], manager=boss, entry_date=end)
    add_evidence(db_session, emp, Dimension.KPIS, [1], manager=boss, entry_date=end - timedelta(days=365))
    client = TestClient(app)

    r = client.get(f"/employees/{emp.id}/evidence-quality", params={"period_id": period.id}, headers=HEADERS)
    body = r.json()
    assert body["total_entries"] == 2
    assert body["recency_weighted_ratings"] == {"kpis": 4.0}
    assert body["consistent"] is True
