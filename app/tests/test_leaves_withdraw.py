"""
Tests for leave withdrawal
"""
from fastapi import status

from app.models.audit_log import AuditLog
from app.models.leave import LeaveRequest, LeaveStatus


def _submit(client, headers, **overrides):
    payload = {
        "type": "personal",
        "start_date": "2024-07-01",
        "end_date": "2024-07-02",
        "reason": "Moving house",
    }
    payload.update(overrides)
    response = client.post("/api/v1/leaves", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]


def test_owner_withdraws_pending_leave(client, db, employee_headers):
    leave = _submit(client, employee_headers)

    response = client.delete(f"/api/v1/leaves/{leave['id']}", headers=employee_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "data": None}
    assert db.query(LeaveRequest).filter(LeaveRequest.id == leave["id"]).first() is None
    audit = db.query(AuditLog).filter(AuditLog.action == "LEAVE_WITHDRAW").one()
    assert audit.entity_id == leave["id"]


def test_admin_withdraws_on_behalf_of_employee(client, db, admin_headers, employee_headers):
    leave = _submit(client, employee_headers)

    response = client.delete(f"/api/v1/leaves/{leave['id']}", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert db.query(LeaveRequest).count() == 0


def test_coworker_cannot_withdraw(client, db, employee_headers, coworker, headers_for):
    leave = _submit(client, employee_headers)

    response = client.delete(f"/api/v1/leaves/{leave['id']}", headers=headers_for(coworker))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert db.query(LeaveRequest).count() == 1


def test_withdraw_decided_leave_is_invalid_state(client, db, admin_headers, employee_headers):
    approved = _submit(client, employee_headers)
    rejected = _submit(client, employee_headers, start_date="2024-08-01", end_date="2024-08-01")
    client.post(f"/api/v1/leaves/{approved['id']}/decision", json={"outcome": "approved"}, headers=admin_headers)
    client.post(f"/api/v1/leaves/{rejected['id']}/decision", json={"outcome": "rejected"}, headers=admin_headers)

    for leave, expected in ((approved, LeaveStatus.APPROVED), (rejected, LeaveStatus.REJECTED)):
        response = client.delete(f"/api/v1/leaves/{leave['id']}", headers=employee_headers)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "INVALID_STATE"
        row = db.query(LeaveRequest).populate_existing().filter(LeaveRequest.id == leave["id"]).one()
        assert row.status == expected
        assert row.version == 2


def test_withdraw_unknown_leave_is_not_found(client, employee_headers):
    response = client.delete("/api/v1/leaves/424242", headers=employee_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["code"] == "NOT_FOUND"
