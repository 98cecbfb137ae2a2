import threading
import pytest
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import app.services.audit as audit
from app.core.exceptions import BusinessRuleError
from app.database import Base
from app.models.audit_log import AuditLog
from app.models.employee import Employee
from app.models.global_settings import GlobalSettings, GLOBAL_SETTINGS_ID
from app.models.leave_request import LeaveApproval, LeaveRequest
from app.models.leave_type import LeaveTypeConfig
from app.models.user import User, UserRole
from app.schemas.leave import LeaveRequestCreate
from app.services.leave_service import LeaveService


def _request_leave(client, headers, code="ANNUAL", start=date(2030, 1, 10), end=date(2030, 1, 12), **extra):
    return client.post(
        "/api/leaves",
        headers=headers,
        json={
            "leave_type_code": code,
            "reason": "Family trip",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            **extra,
        },
    )


def _decide(client, headers, request_id, approved, comment=None):
    return client.post(
        f"/api/leaves/{request_id}/decision",
        headers=headers,
        json={"approved": approved, "comment": comment},
    )


@pytest.fixture
def team(make_employee, link_managers, make_leave_type):
    """An employee reporting to two managers, with a basic catalog."""
    make_leave_type("ANNUAL", name="Annual Leave", default_balance=21)
    make_leave_type("PERSONAL", name="Personal Leave", default_balance=5)
    first = make_employee(role=UserRole.MANAGEMENT, name="Manager A")
    second = make_employee(role=UserRole.MANAGEMENT, name="Manager B")
    employee = link_managers(make_employee(name="Team Member"), first, second)
    return employee, first, second


def test_create_fans_out_one_approval_per_manager(client, db_session, team, auth_headers):
    employee, first, second = team
    response = _request_leave(client, auth_headers(employee))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["days_count"] == 3
    assert data["leave_type_code"] == "ANNUAL"
    assert [a["approver"]["id"] for a in data["approvals"]] == [first.id, second.id]
    assert all(a["approved"] is None for a in data["approvals"])

    entry = db_session.query(AuditLog).filter(AuditLog.action == "create_leave_request").one()
    assert entry.entity_id == data["id"]


def test_leave_code_is_case_insensitive(client, team, auth_headers):
    employee, _, _ = team
    response = _request_leave(client, auth_headers(employee), code="annual")
    assert response.status_code == 201


def test_tenure_requirement_blocks_request(client, make_employee, make_leave_type, auth_headers):
    make_leave_type("BIRTHDAY", name="Birthday Leave", required_work_days=90, allow_half_day=False)
    employee = make_employee(start_work_date=date.today())
    response = _request_leave(client, auth_headers(employee), code="BIRTHDAY", start=date(2030, 5, 1), end=date(2030, 5, 1))
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "TENURE_REQUIREMENT"
    assert "You have worked 0 days" in error["msg"]
    assert "at least 90 days" in error["msg"]


def test_overlapping_request_is_rejected(client, team, auth_headers):
    employee, _, _ = team
    headers = auth_headers(employee)
    first = _request_leave(client, headers, code="ANNUAL", start=date(2030, 1, 10), end=date(2030, 1, 12))
    assert first.status_code == 201

    second = _request_leave(client, headers, code="PERSONAL", start=date(2030, 1, 11), end=date(2030, 1, 13))
    assert second.status_code == 400
    error = second.json()["errors"][0]
    assert error["code"] == "LEAVE_OVERLAP"
    assert "pending Annual Leave request for 2030-01-10 - 2030-01-12" in error["msg"]


def test_cancelled_request_frees_the_dates(client, team, auth_headers):
    employee, _, _ = team
    headers = auth_headers(employee)
    leave_id = _request_leave(client, headers).json()["id"]
    assert client.post(f"/api/leaves/{leave_id}/cancel", headers=headers).status_code == 200
    assert _request_leave(client, headers).status_code == 201


def test_one_rejection_rejects_the_request(client, team, auth_headers):
    employee, first, second = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]

    response = _decide(client, auth_headers(first), leave_id, True, "Enjoy")
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"

    response = _decide(client, auth_headers(second), leave_id, False, "Release week")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "REJECTED"
    assert [a["approved"] for a in data["approvals"]] == [True, False]


def test_unanimous_approval_approves(client, team, auth_headers):
    employee, first, second = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    _decide(client, auth_headers(first), leave_id, True)
    response = _decide(client, auth_headers(second), leave_id, True)
    assert response.json()["status"] == "APPROVED"


def test_rejection_first_resolves_immediately(client, team, auth_headers):
    employee, first, second = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    response = _decide(client, auth_headers(first), leave_id, False)
    assert response.json()["status"] == "REJECTED"

    # The request is closed; the second manager can no longer vote
    response = _decide(client, auth_headers(second), leave_id, True)
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_STATE"


def test_approver_can_revise_vote_while_pending(client, team, auth_headers):
    employee, first, _ = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    _decide(client, auth_headers(first), leave_id, True)

    response = _decide(client, auth_headers(first), leave_id, True, "Still fine")
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"
    [mine] = [a for a in response.json()["approvals"] if a["approver"]["id"] == first.id]
    assert mine["comment"] == "Still fine"

    response = _decide(client, auth_headers(first), leave_id, False, "Changed my mind")
    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"

    # Once resolved the vote is final
    response = _decide(client, auth_headers(first), leave_id, True)
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_STATE"


def test_unassigned_manager_cannot_decide(client, team, make_employee, auth_headers):
    employee, _, _ = team
    outsider = make_employee(role=UserRole.MANAGEMENT)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    response = _decide(client, auth_headers(outsider), leave_id, True)
    assert response.status_code == 403
    assert response.json()["errors"][0]["msg"] == "You are not an approver for this leave request"


def test_plain_employee_cannot_decide(client, team, make_employee, auth_headers):
    employee, _, _ = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    response = _decide(client, auth_headers(make_employee()), leave_id, True)
    assert response.status_code == 403
    assert response.json()["errors"][0]["msg"] == "Forbidden: Management role required"


def test_direct_approval_fills_every_open_row(client, db_session, team, make_employee, auth_headers):
    employee, first, _ = team
    hr = make_employee(role=UserRole.HR)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    _decide(client, auth_headers(first), leave_id, True, "Fine by me")

    response = _decide(client, auth_headers(hr), leave_id, True, "Approved by HR")
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    approvals = db_session.query(LeaveApproval).filter(LeaveApproval.leave_request_id == leave_id).order_by(LeaveApproval.id).all()
    assert [a.approved for a in approvals] == [True, True]
    assert approvals[0].comment == "Fine by me"
    assert all(a.responded_at is not None for a in approvals)


def test_direct_rejection(client, team, make_employee, auth_headers):
    employee, _, _ = team
    admin = make_employee(role=UserRole.ADMIN)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    response = _decide(client, auth_headers(admin), leave_id, False)
    data = response.json()
    assert data["status"] == "REJECTED"
    assert all(a["approved"] is False for a in data["approvals"])


def test_invalid_date_range(client, team, auth_headers):
    employee, _, _ = team
    response = _request_leave(client, auth_headers(employee), start=date(2030, 1, 12), end=date(2030, 1, 10))
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_DATE_RANGE"


def test_max_consecutive_days(client, team, portal_settings, auth_headers):
    employee, _, _ = team
    portal_settings(max_consecutive_leave_days=5)
    start = date(2030, 2, 1)
    response = _request_leave(client, auth_headers(employee), start=start, end=start + timedelta(days=5))
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "MAX_CONSECUTIVE_DAYS"
    assert error["msg"] == "Cannot request more than 5 consecutive days"

    response = _request_leave(client, auth_headers(employee), start=start, end=start + timedelta(days=4))
    assert response.status_code == 201


def test_unknown_and_inactive_leave_types(client, team, make_leave_type, auth_headers):
    employee, _, _ = team
    make_leave_type("RETIRED", is_active=False)
    response = _request_leave(client, auth_headers(employee), code="NOPE")
    assert response.status_code == 400
    assert response.json()["errors"][0]["msg"] == "Invalid leave type: NOPE"

    response = _request_leave(client, auth_headers(employee), code="RETIRED")
    assert response.json()["errors"][0]["code"] == "UNKNOWN_LEAVE_TYPE"


def test_half_day_rules(client, team, make_leave_type, auth_headers):
    employee, _, _ = team
    make_leave_type("BIRTHDAY", allow_half_day=False)
    headers = auth_headers(employee)
    day = date(2030, 3, 4)

    response = _request_leave(client, headers, code="BIRTHDAY", start=day, end=day, is_half_day=True, half_day_type="morning")
    assert response.json()["errors"][0]["code"] == "HALF_DAY_NOT_ALLOWED"

    response = _request_leave(client, headers, start=day, end=day, is_half_day=True)
    assert response.json()["errors"][0]["code"] == "HALF_DAY_INVALID"

    response = _request_leave(client, headers, start=day, end=day + timedelta(days=1), is_half_day=True, half_day_type="afternoon")
    assert response.json()["errors"][0]["code"] == "HALF_DAY_INVALID"

    response = _request_leave(client, headers, start=day, end=day, is_half_day=True, half_day_type="afternoon")
    assert response.status_code == 201
    assert response.json()["days_count"] == 0.5
    assert response.json()["half_day_type"] == "afternoon"


def test_employee_without_managers_stays_pending(client, make_employee, make_leave_type, auth_headers):
    make_leave_type("ANNUAL")
    loner = make_employee()
    response = _request_leave(client, auth_headers(loner))
    assert response.status_code == 201
    assert response.json()["approvals"] == []
    assert response.json()["status"] == "PENDING"


def test_cancel_rules(client, db_session, team, make_employee, auth_headers):
    employee, first, second = team
    headers = auth_headers(employee)
    leave_id = _request_leave(client, headers).json()["id"]

    response = client.post(f"/api/leaves/{leave_id}/cancel", headers=auth_headers(make_employee()))
    assert response.status_code == 403
    assert response.json()["errors"][0]["msg"] == "Can only cancel your own leave requests"

    response = client.post(f"/api/leaves/{leave_id}/cancel", headers=headers)
    assert response.json()["status"] == "CANCELLED"

    response = client.post(f"/api/leaves/{leave_id}/cancel", headers=headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["msg"] == "Can only cancel pending or approved leave requests"


def test_hr_cancels_approved_leave(client, team, make_employee, auth_headers):
    employee, _, _ = team
    hr = make_employee(role=UserRole.HR)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    _decide(client, auth_headers(hr), leave_id, True)

    response = client.post(f"/api/leaves/{leave_id}/cancel", headers=auth_headers(hr))
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


def test_listing_views(client, team, make_employee, auth_headers):
    employee, first, second = team
    hr = make_employee(role=UserRole.HR)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]

    mine = client.get("/api/leaves", headers=auth_headers(employee)).json()
    assert [l["id"] for l in mine] == [leave_id]

    pending = client.get("/api/leaves", params={"view": "pending-approval"}, headers=auth_headers(first)).json()
    assert [l["id"] for l in pending] == [leave_id]

    _decide(client, auth_headers(first), leave_id, True)
    pending = client.get("/api/leaves", params={"view": "pending-approval"}, headers=auth_headers(first)).json()
    assert pending == []

    response = client.get("/api/leaves", params={"view": "all"}, headers=auth_headers(employee))
    assert response.status_code == 403

    everything = client.get("/api/leaves", params={"view": "all", "status": "PENDING"}, headers=auth_headers(hr)).json()
    assert [l["id"] for l in everything] == [leave_id]


def test_get_request_visibility(client, team, make_employee, auth_headers):
    employee, first, _ = team
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]

    assert client.get(f"/api/leaves/{leave_id}", headers=auth_headers(employee)).status_code == 200
    assert client.get(f"/api/leaves/{leave_id}", headers=auth_headers(first)).status_code == 200
    assert client.get(f"/api/leaves/{leave_id}", headers=auth_headers(make_employee())).status_code == 403
    assert client.get("/api/leaves/99999", headers=auth_headers(employee)).status_code == 404


def test_approved_leave_is_charged_to_balance(client, team, make_employee, auth_headers):
    employee, _, _ = team
    hr = make_employee(role=UserRole.HR)
    leave_id = _request_leave(client, auth_headers(employee)).json()["id"]
    _decide(client, auth_headers(hr), leave_id, True)

    balances = client.get("/api/leave-balances/me", params={"year": 2030}, headers=auth_headers(employee)).json()
    annual = next(b for b in balances if b["leave_type_code"] == "ANNUAL")
    assert annual["used_days"] == 3
    assert annual["remaining_days"] == 18


def test_failed_audit_write_does_not_block_the_request(client, db_session, team, monkeypatch, auth_headers):
    employee, _, _ = team
    # Values the JSON column cannot encode make the audit insert fail
    monkeypatch.setattr(audit, "_sanitize", lambda value: object())

    response = _request_leave(client, auth_headers(employee))
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"
    assert len(response.json()["approvals"]) == 2

    assert db_session.query(LeaveRequest).filter(LeaveRequest.id == response.json()["id"]).count() == 1
    assert db_session.query(AuditLog).filter(AuditLog.action == "create_leave_request").count() == 0


def test_concurrent_overlapping_requests_are_serialized(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'leaves.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as setup:
        user = User(sso_subject="sso|racer", email="racer@company.com", name="Racer", role=UserRole.EMPLOYEE)
        setup.add(user)
        setup.flush()
        employee = Employee(user_id=user.id, full_name="Racer", employee_code=f"EMP-{user.id:05d}")
        setup.add(employee)
        setup.add(LeaveTypeConfig(code="ANNUAL", name="Annual Leave", default_balance=21, order=0))
        setup.add(LeaveTypeConfig(code="PERSONAL", name="Personal Leave", default_balance=5, order=1))
        setup.add(GlobalSettings(id=GLOBAL_SETTINGS_ID))
        setup.commit()
        employee_id = employee.id

    requests = [
        LeaveRequestCreate(leave_type_code="ANNUAL", reason="Trip", start_date=date(2030, 1, 10), end_date=date(2030, 1, 12)),
        LeaveRequestCreate(leave_type_code="PERSONAL", reason="Errands", start_date=date(2030, 1, 11), end_date=date(2030, 1, 13)),
    ]
    barrier = threading.Barrier(2)
    outcomes = []

    def submit(data):
        with Session() as session:
            employee = session.get(Employee, employee_id)
            barrier.wait()
            try:
                LeaveService(session).create_request(employee, data)
                outcomes.append("ok")
            except BusinessRuleError as e:
                outcomes.append(e.error_code)

    threads = [threading.Thread(target=submit, args=(data,)) for data in requests]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["LEAVE_OVERLAP", "ok"]
    with Session() as check:
        assert check.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id).count() == 1
    engine.dispose()
