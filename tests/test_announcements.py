from app.models.announcement import AnnouncementRead
from app.models.audit_log import AuditLog
from app.models.user import UserRole


def _post(client, headers, title, content="Office news"):
    return client.post("/api/announcements", headers=headers, json={"title": title, "content": content})


def _unread(client, headers):
    return client.get("/api/announcements/unread", headers=headers).json()


def test_new_announcements_go_on_top(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    first = _post(client, auth_headers(hr), "Holiday schedule")
    assert first.status_code == 201
    assert first.json()["is_read"] is True
    _post(client, auth_headers(hr), "Parking changes")

    listed = client.get("/api/announcements", headers=auth_headers(hr)).json()
    assert [a["title"] for a in listed] == ["Parking changes", "Holiday schedule"]
    assert [a["order"] for a in listed] == [0, 1]
    # The author has already read what they wrote
    assert all(a["is_read"] for a in listed)


def test_read_state_per_user(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    holiday = _post(client, auth_headers(hr), "Holiday schedule").json()
    _post(client, auth_headers(hr), "Parking changes")

    assert _unread(client, auth_headers(employee)) == {"has_unread": True, "unread_count": 2}

    response = client.post(f"/api/announcements/{holiday['id']}/read", headers=auth_headers(employee))
    assert response.status_code == 200
    assert _unread(client, auth_headers(employee))["unread_count"] == 1
    listed = client.get("/api/announcements", headers=auth_headers(employee)).json()
    assert {a["title"]: a["is_read"] for a in listed} == {"Holiday schedule": True, "Parking changes": False}

    # Marking twice keeps a single row
    client.post(f"/api/announcements/{holiday['id']}/read", headers=auth_headers(employee))
    assert _unread(client, auth_headers(employee))["unread_count"] == 1

    client.post("/api/announcements/read-all", headers=auth_headers(employee))
    assert _unread(client, auth_headers(employee)) == {"has_unread": False, "unread_count": 0}


def test_content_edit_makes_announcement_unread_again(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    holiday = _post(client, auth_headers(hr), "Holiday schedule").json()
    client.post(f"/api/announcements/{holiday['id']}/read", headers=auth_headers(employee))
    assert _unread(client, auth_headers(employee))["unread_count"] == 0

    response = client.put(
        f"/api/announcements/{holiday['id']}",
        headers=auth_headers(hr),
        json={"content": "The office closes on Friday"},
    )
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert _unread(client, auth_headers(employee))["unread_count"] == 1

    # Reordering or toggling visibility is not a content change
    client.post(f"/api/announcements/{holiday['id']}/read", headers=auth_headers(employee))
    client.put("/api/announcements/reorder", headers=auth_headers(hr), json={"ids": [holiday["id"]]})
    client.put(f"/api/announcements/{holiday['id']}", headers=auth_headers(hr), json={"is_active": True})
    assert _unread(client, auth_headers(employee))["unread_count"] == 0


def test_inactive_announcements_are_hidden_from_employees(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    draft = _post(client, auth_headers(hr), "Draft").json()
    _post(client, auth_headers(hr), "Published")
    client.put(f"/api/announcements/{draft['id']}", headers=auth_headers(hr), json={"is_active": False})

    employee_view = client.get("/api/announcements", headers=auth_headers(employee)).json()
    assert [a["title"] for a in employee_view] == ["Published"]
    assert _unread(client, auth_headers(employee))["unread_count"] == 1

    hr_view = client.get("/api/announcements", headers=auth_headers(hr)).json()
    assert {a["title"]: a["is_active"] for a in hr_view} == {"Draft": False, "Published": True}


def test_reorder(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    first = _post(client, auth_headers(hr), "First").json()
    second = _post(client, auth_headers(hr), "Second").json()

    response = client.put(
        "/api/announcements/reorder", headers=auth_headers(hr), json={"ids": [first["id"], second["id"]]}
    )
    assert response.status_code == 200
    assert [a["title"] for a in response.json()] == ["First", "Second"]

    response = client.put("/api/announcements/reorder", headers=auth_headers(hr), json={"ids": [first["id"], 9999]})
    assert response.status_code == 404


def test_employee_cannot_manage_announcements(client, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    response = _post(client, auth_headers(employee), "Free lunch")
    assert response.status_code == 403
    assert response.json()["errors"][0]["msg"] == "Forbidden: HR role required"

    existing = _post(client, auth_headers(hr), "Holiday schedule").json()
    url = f"/api/announcements/{existing['id']}"
    assert client.put(url, headers=auth_headers(employee), json={"title": "Mine now"}).status_code == 403
    assert client.delete(url, headers=auth_headers(employee)).status_code == 403


def test_missing_announcement(client, make_employee, auth_headers):
    employee = make_employee()
    response = client.post("/api/announcements/9999/read", headers=auth_headers(employee))
    assert response.status_code == 404
    assert response.json()["errors"][0]["msg"] == "Announcement not found"


def test_delete_removes_read_marks_and_is_audited(client, db_session, make_employee, auth_headers):
    hr = make_employee(role=UserRole.HR)
    employee = make_employee()
    announcement = _post(client, auth_headers(hr), "Holiday schedule").json()
    client.post(f"/api/announcements/{announcement['id']}/read", headers=auth_headers(employee))

    response = client.delete(f"/api/announcements/{announcement['id']}", headers=auth_headers(hr))
    assert response.status_code == 200
    assert db_session.query(AnnouncementRead).filter_by(announcement_id=announcement["id"]).count() == 0
    assert client.get("/api/announcements", headers=auth_headers(employee)).json() == []

    actions = {
        row.action for row in db_session.query(AuditLog).filter(AuditLog.entity_type == "announcement").all()
    }
    assert actions == {"create_announcement", "delete_announcement"}
