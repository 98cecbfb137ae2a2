import pytest
from app.models.leave_type import LeaveTypeConfig
from app.models.user import UserRole


def test_seed_creates_default_catalog(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    response = client.post("/api/leave-types/seed", headers=auth_headers(hr))
    assert response.status_code == 201
    types = response.json()
    assert [t["code"] for t in types] == ["ANNUAL", "SICK", "PERSONAL", "BIRTHDAY", "UNPAID", "OTHER"]
    assert [t["order"] for t in types] == [0, 1, 2, 3, 4, 5]

    by_code = {t["code"]: t for t in types}
    assert by_code["ANNUAL"]["default_balance"] == 21
    assert by_code["ANNUAL"]["allow_carryover"] is True
    assert by_code["ANNUAL"]["carryover_max"] == 3
    assert by_code["BIRTHDAY"]["allow_half_day"] is False
    assert by_code["UNPAID"]["is_unlimited"] is True
    assert by_code["UNPAID"]["is_paid"] is False


def test_seed_refuses_non_empty_catalog(client, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    make_leave_type("ANNUAL")
    response = client.post("/api/leave-types/seed", headers=auth_headers(hr))
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "ALREADY_SEEDED"


def test_seed_uses_current_settings(client, make_employee, portal_settings, auth_headers):
    hr = make_employee(role=UserRole.HR)
    portal_settings(max_annual_leave_days=25, max_sick_leave_days=12)
    types = client.post("/api/leave-types/seed", headers=auth_headers(hr)).json()
    by_code = {t["code"]: t for t in types}
    assert by_code["ANNUAL"]["default_balance"] == 25
    assert by_code["SICK"]["default_balance"] == 12


def test_create_normalizes_code_and_appends(client, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    make_leave_type("ANNUAL", order=4)
    response = client.post(
        "/api/leave-types",
        headers=auth_headers(hr),
        json={"name": "Study Leave", "code": " study ", "default_balance": 5},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["code"] == "STUDY"
    assert data["order"] == 5
    assert data["is_active"] is True


def test_duplicate_code_is_rejected(client, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    make_leave_type("SICK")
    response = client.post(
        "/api/leave-types",
        headers=auth_headers(hr),
        json={"name": "Sick again", "code": "sick"},
    )
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "DUPLICATE_CODE"
    assert error["msg"] == "Leave type with code SICK already exists"


def test_employee_cannot_manage_catalog(client, make_employee, auth_headers):
    employee = make_employee()
    response = client.post(
        "/api/leave-types",
        headers=auth_headers(employee),
        json={"name": "Free Days", "code": "FREE"},
    )
    assert response.status_code == 403


def test_deactivated_types_hidden_from_employees(client, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    make_leave_type("ANNUAL")
    make_leave_type("LEGACY", is_active=False)

    codes = [t["code"] for t in client.get("/api/leave-types", headers=auth_headers(employee)).json()]
    assert codes == ["ANNUAL"]

    codes = [
        t["code"]
        for t in client.get("/api/leave-types", params={"include_inactive": True}, headers=auth_headers(employee)).json()
    ]
    assert codes == ["ANNUAL"]

    codes = [
        t["code"]
        for t in client.get("/api/leave-types", params={"include_inactive": True}, headers=auth_headers(hr)).json()
    ]
    assert set(codes) == {"ANNUAL", "LEGACY"}


def test_update_and_soft_delete(client, db_session, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    leave_type = make_leave_type("PERSONAL", default_balance=5)

    response = client.put(
        f"/api/leave-types/{leave_type.id}",
        headers=auth_headers(hr),
        json={"default_balance": 7, "required_work_days": 30},
    )
    assert response.status_code == 200
    assert response.json()["default_balance"] == 7
    assert response.json()["required_work_days"] == 30

    response = client.delete(f"/api/leave-types/{leave_type.id}", headers=auth_headers(hr))
    assert response.status_code == 200

    row = db_session.get(LeaveTypeConfig, leave_type.id)
    assert row.is_deleted is True
    assert row.is_active is False
    assert client.get(f"/api/leave-types/{leave_type.id}", headers=auth_headers(hr)).status_code == 404


def test_reorder(client, make_employee, make_leave_type, auth_headers):
    hr = make_employee(role=UserRole.HR)
    a = make_leave_type("AAA", order=0)
    b = make_leave_type("BBB", order=1)
    c = make_leave_type("CCC", order=2)

    response = client.put("/api/leave-types/reorder", headers=auth_headers(hr), json={"ids": [c.id, a.id, b.id]})
    assert response.status_code == 200
    assert [t["code"] for t in response.json()] == ["CCC", "AAA", "BBB"]
