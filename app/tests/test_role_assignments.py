"""
Tests for the role assignment ledger
"""
from datetime import date

import pytest
from fastapi import status
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConcurrencyConflictError,
    InvalidStateTransitionError,
    ValidationError,
)
from app.models.audit_log import AuditLog
from app.models.company import Company
from app.models.employee import Employee
from app.models.role import RoleModel
from app.models.role_assignment import RoleAssignment
from app.services import role_assignment_service as ledger
from app.services.scope_gate import ScopeContext


def _assign(client, headers, employee_id, role_id, start_date, notes=None):
    payload = {"role_id": role_id, "start_date": start_date}
    if notes is not None:
        payload["notes"] = notes
    return client.post(f"/api/v1/employees/{employee_id}/roles", json=payload, headers=headers)


def _current_rows(db: Session, employee_id: int):
    return db.query(RoleAssignment).filter(
        RoleAssignment.employee_id == employee_id,
        RoleAssignment.is_current == True,  # noqa: E712
    ).all()


def test_assign_creates_current_assignment(client, db, admin_headers, employee, role_engineer):
    response = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01", notes="hired")

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["employee_id"] == employee.id
    assert data["is_current"] is True
    assert data["end_date"] is None
    assert data["role"]["title"] == "Engineer"
    assert data["notes"] == "hired"

    audit = db.query(AuditLog).filter(AuditLog.action == "ROLE_ASSIGN").one()
    assert audit.entity_id == data["id"]
    assert audit.company_id == employee.company_id


def test_second_assignment_closes_previous(client, db, admin_headers, employee, role_engineer, role_senior):
    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01")
    response = _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01")
    assert response.status_code == status.HTTP_201_CREATED

    history = client.get(f"/api/v1/employees/{employee.id}/roles", headers=admin_headers).json()["data"]

    assert len(history) == 2
    current, previous = history
    assert current["role_id"] == role_senior.id
    assert current["is_current"] is True
    assert current["end_date"] is None
    assert previous["role_id"] == role_engineer.id
    assert previous["is_current"] is False
    assert previous["end_date"] == "2024-03-01"
    assert len(_current_rows(db, employee.id)) == 1


def test_history_orders_current_first_then_start_date_desc(
    client, admin_headers, employee, role_engineer, role_senior
):
    _assign(client, admin_headers, employee.id, role_engineer.id, "2023-01-01")
    _assign(client, admin_headers, employee.id, role_senior.id, "2023-06-01")
    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-02-01")

    history = client.get(f"/api/v1/employees/{employee.id}/roles", headers=admin_headers).json()["data"]

    assert [row["start_date"] for row in history] == ["2024-02-01", "2023-06-01", "2023-01-01"]
    assert [row["is_current"] for row in history] == [True, False, False]


def test_single_current_invariant_after_many_assignments(
    client, db, admin_headers, employee, role_engineer, role_senior
):
    for i, role in enumerate([role_engineer, role_senior, role_engineer, role_senior]):
        _assign(client, admin_headers, employee.id, role.id, f"2024-0{i + 1}-01")

    current = _current_rows(db, employee.id)
    assert len(current) == 1
    assert current[0].end_date is None
    assert current[0].start_date == date(2024, 4, 1)


def test_assign_before_current_start_is_rejected(client, admin_headers, employee, role_engineer, role_senior):
    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-03-01")

    response = _assign(client, admin_headers, employee.id, role_senior.id, "2024-01-01")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"]["code"] == "VALIDATION"


def test_non_admin_cannot_assign(client, employee_headers, employee, role_engineer):
    response = _assign(client, employee_headers, employee.id, role_engineer.id, "2024-01-01")

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_assign_role_from_other_company_is_not_found(client, admin_headers, employee, foreign_role):
    response = _assign(client, admin_headers, employee.id, foreign_role.id, "2024-01-01")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_assign_to_employee_of_other_company_is_not_found(client, admin_headers, foreign_employee, role_engineer):
    response = _assign(client, admin_headers, foreign_employee.id, role_engineer.id, "2024-01-01")

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_other_company_admin_cannot_see_assignment(
    client, admin_headers, employee, role_engineer, foreign_admin, headers_for
):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    foreign_headers = headers_for(foreign_admin)

    by_id = client.get(f"/api/v1/role-assignments/{created['id']}", headers=foreign_headers)
    missing = client.get("/api/v1/role-assignments/999999", headers=foreign_headers)

    assert by_id.status_code == status.HTTP_404_NOT_FOUND
    assert by_id.json() == missing.json()


def test_employee_reads_own_history_but_not_coworkers(
    client, admin_headers, employee_headers, employee, coworker, role_engineer
):
    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01")
    _assign(client, admin_headers, coworker.id, role_engineer.id, "2024-01-01")

    own = client.get(f"/api/v1/employees/{employee.id}/roles", headers=employee_headers)
    other = client.get(f"/api/v1/employees/{coworker.id}/roles", headers=employee_headers)

    assert own.status_code == status.HTTP_200_OK
    assert len(own.json()["data"]) == 1
    assert other.status_code == status.HTTP_403_FORBIDDEN


def test_current_role_endpoint(client, admin_headers, employee, role_engineer, role_senior):
    empty = client.get(f"/api/v1/employees/{employee.id}/roles/current", headers=admin_headers)
    assert empty.status_code == status.HTTP_200_OK
    assert empty.json() == {"success": True, "data": None}

    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01")
    _assign(client, admin_headers, employee.id, role_senior.id, "2024-02-01")

    current = client.get(f"/api/v1/employees/{employee.id}/roles/current", headers=admin_headers).json()["data"]
    assert current["role_id"] == role_senior.id


def test_end_current_assignment(client, db, admin_headers, employee, role_engineer):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    response = client.post(
        f"/api/v1/role-assignments/{created['id']}/end",
        json={"end_date": "2024-05-31"},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["is_current"] is False
    assert data["end_date"] == "2024-05-31"
    assert _current_rows(db, employee.id) == []


def test_end_non_current_assignment_is_invalid_state(
    client, admin_headers, employee, role_engineer, role_senior
):
    first = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01")

    response = client.post(
        f"/api/v1/role-assignments/{first['id']}/end",
        json={"end_date": "2024-04-01"},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"]["code"] == "INVALID_STATE"


def test_end_before_start_is_rejected(db, admin, employee, role_engineer, scope_of):
    assignment = ledger.assign_role(db, scope_of(admin), employee.id, role_engineer.id, date(2024, 3, 1))

    with pytest.raises(ValidationError):
        ledger.end_role_assignment(db, scope_of(admin), assignment.id, date(2024, 2, 1))


def test_end_already_ended_assignment_raises(db, admin, employee, role_engineer, scope_of):
    assignment = ledger.assign_role(db, scope_of(admin), employee.id, role_engineer.id, date(2024, 1, 1))
    ledger.end_role_assignment(db, scope_of(admin), assignment.id, date(2024, 2, 1))

    with pytest.raises(InvalidStateTransitionError):
        ledger.end_role_assignment(db, scope_of(admin), assignment.id, date(2024, 3, 1))


def test_delete_current_reopens_latest_remaining(client, db, admin_headers, employee, role_engineer, role_senior):
    first = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    second = _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01").json()["data"]

    response = client.delete(f"/api/v1/role-assignments/{second['id']}", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True
    current = _current_rows(db, employee.id)
    assert len(current) == 1
    assert current[0].id == first["id"]
    assert current[0].end_date is None


def test_delete_non_current_leaves_current_untouched(
    client, db, admin_headers, employee, role_engineer, role_senior
):
    first = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    second = _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01").json()["data"]

    client.delete(f"/api/v1/role-assignments/{first['id']}", headers=admin_headers)

    rows = db.query(RoleAssignment).filter(RoleAssignment.employee_id == employee.id).all()
    assert [row.id for row in rows] == [second["id"]]
    assert rows[0].is_current is True


def test_non_admin_cannot_delete(client, admin_headers, employee_headers, employee, role_engineer):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    response = client.delete(f"/api/v1/role-assignments/{created['id']}", headers=employee_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


ADMIN_ONLY_CALLS = [
    ("POST", "/api/v1/role-assignments/{id}/end", {"end_date": "2024-05-01"}),
    ("DELETE", "/api/v1/role-assignments/{id}", None),
    ("PATCH", "/api/v1/role-assignments/{id}", {"notes": "Corrected"}),
]


@pytest.mark.parametrize("method,path,body", ADMIN_ONLY_CALLS)
def test_non_admin_is_forbidden_for_unknown_assignment(client, employee_headers, method, path, body):
    response = client.request(method, path.format(id=999999), json=body, headers=employee_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.parametrize("method,path,body", ADMIN_ONLY_CALLS)
def test_non_admin_is_forbidden_for_other_company_assignment(
    client, db, employee_headers, foreign_admin, foreign_employee, foreign_role, headers_for, method, path, body
):
    created = _assign(
        client, headers_for(foreign_admin), foreign_employee.id, foreign_role.id, "2024-01-01"
    ).json()["data"]

    response = client.request(method, path.format(id=created["id"]), json=body, headers=employee_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    row = db.query(RoleAssignment).populate_existing().filter(RoleAssignment.id == created["id"]).one()
    assert row.is_current is True
    assert row.notes is None


def _update(client, headers, assignment_id, **fields):
    return client.patch(f"/api/v1/role-assignments/{assignment_id}", json=fields, headers=headers)


def test_update_corrects_role_and_notes(client, db, admin_headers, employee, role_engineer, role_senior):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    response = _update(client, admin_headers, created["id"], role_id=role_senior.id, notes="Hired as senior")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["role_id"] == role_senior.id
    assert data["role"]["title"] == role_senior.title
    assert data["notes"] == "Hired as senior"
    assert data["is_current"] is True
    assert data["version"] == created["version"] + 1
    audit = db.query(AuditLog).filter(AuditLog.action == "ROLE_UPDATE").one()
    assert audit.entity_id == created["id"]


def test_update_moves_end_date_of_closed_assignment(
    client, admin_headers, employee, role_engineer, role_senior
):
    first = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01")

    data = _update(client, admin_headers, first["id"], end_date="2024-02-28").json()["data"]

    assert data["end_date"] == "2024-02-28"
    assert data["is_current"] is False


def test_update_cannot_give_current_assignment_an_end_date(client, db, admin_headers, employee, role_engineer):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    response = _update(client, admin_headers, created["id"], end_date="2024-06-30")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error"]["code"] == "VALIDATION"
    current = _current_rows(db, employee.id)
    assert [row.id for row in current] == [created["id"]]
    assert current[0].end_date is None


def test_update_rejects_start_after_end(client, admin_headers, employee, role_engineer, role_senior):
    first = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]
    _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01")

    response = _update(client, admin_headers, first["id"], start_date="2024-04-01")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_update_current_start_cannot_precede_previous_assignment(
    client, admin_headers, employee, role_engineer, role_senior
):
    _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01")
    second = _assign(client, admin_headers, employee.id, role_senior.id, "2024-03-01").json()["data"]

    response = _update(client, admin_headers, second["id"], start_date="2023-12-01")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_update_with_other_company_role_is_not_found(client, admin_headers, employee, role_engineer, foreign_role):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    response = _update(client, admin_headers, created["id"], role_id=foreign_role.id)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_update_without_changes_keeps_version(client, db, admin_headers, employee, role_engineer):
    created = _assign(client, admin_headers, employee.id, role_engineer.id, "2024-01-01").json()["data"]

    data = _update(client, admin_headers, created["id"]).json()["data"]

    assert data["version"] == created["version"]
    assert db.query(AuditLog).filter(AuditLog.action == "ROLE_UPDATE").count() == 0


def _seed_race(factory):
    setup = factory()
    try:
        company = Company(name="Acme", slug="acme")
        setup.add(company)
        setup.flush()
        admin = Employee(company_id=company.id, user_id="admin", full_name="Admin", is_admin=True)
        worker = Employee(company_id=company.id, user_id="worker", full_name="Worker")
        roles = [RoleModel(company_id=company.id, title=title, active=True) for title in ("A", "B", "C")]
        setup.add_all([admin, worker, *roles])
        setup.commit()
        scope = ScopeContext(company_id=company.id, employee_id=admin.id, is_admin=True)
        return scope, worker.id, [role.id for role in roles]
    finally:
        setup.close()


def test_concurrent_assign_loses_on_stale_current_row(race_session_factory, monkeypatch):
    """Two admins read the same current row; only the first close succeeds"""
    scope, worker_id, (role_a, role_b, role_c) = _seed_race(race_session_factory)

    setup = race_session_factory()
    ledger.assign_role(setup, scope, worker_id, role_a, date(2024, 1, 1))
    setup.close()

    first = race_session_factory()
    second = race_session_factory()
    try:
        stale_current = ledger._load_current_assignment(first, worker_id)
        assert stale_current.version == 1

        ledger.assign_role(second, scope, worker_id, role_b, date(2024, 3, 1))

        monkeypatch.setattr(ledger, "_load_current_assignment", lambda db, employee_id: stale_current)
        with pytest.raises(ConcurrencyConflictError):
            ledger.assign_role(first, scope, worker_id, role_c, date(2024, 4, 1))
        # the losing session was rolled back and is usable again
        assert first.query(RoleAssignment).count() == 2
    finally:
        first.close()
        second.close()

    check = race_session_factory()
    try:
        current = _current_rows(check, worker_id)
        assert len(current) == 1
        assert current[0].role_id == role_b
        assert check.query(RoleAssignment).count() == 2
    finally:
        check.close()


def test_concurrent_first_assignments_hit_unique_current_index(race_session_factory, monkeypatch):
    """Both callers see no current row; the partial unique index rejects the second insert"""
    scope, worker_id, (role_a, role_b, _) = _seed_race(race_session_factory)

    first = race_session_factory()
    second = race_session_factory()
    try:
        ledger.assign_role(second, scope, worker_id, role_a, date(2024, 1, 1))

        monkeypatch.setattr(ledger, "_load_current_assignment", lambda db, employee_id: None)
        with pytest.raises(ConcurrencyConflictError):
            ledger.assign_role(first, scope, worker_id, role_b, date(2024, 1, 1))
        assert first.query(RoleAssignment).count() == 1
    finally:
        first.close()
        second.close()

    check = race_session_factory()
    try:
        current = _current_rows(check, worker_id)
        assert len(current) == 1
        assert current[0].role_id == role_a
    finally:
        check.close()
