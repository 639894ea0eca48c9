"""HTTP surface: auth, session flow and error mapping."""
import pytest
from httpx import ASGITransport, AsyncClient

from eduportal.api.deps import create_access_token
from eduportal.main import app
from eduportal.models.notification import Notification


@pytest.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role.value)}"}


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_register_login_and_profile(client):
    response = await client.post(
        "/api/auth/register",
        json={
            "email": "new@example.com",
            "password": "secret123",
            "name": "New Student",
            "role": "student",
            "roll_number": "R900",
            "class_names": "CSE-A, cse-a",
        },
    )
    assert response.status_code == 201

    login = await client.post(
        "/api/auth/login", json={"email": "new@example.com", "password": "secret123", "role": "student"}
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["class_names"] == ["CSE-A"]
    assert me.json()["is_approved"] is False

    wrong_app = await client.post(
        "/api/auth/login", json={"email": "new@example.com", "password": "secret123", "role": "staff"}
    )
    assert wrong_app.status_code == 403


async def test_requests_need_a_token(client):
    response = await client.get("/api/attendance/stats")
    assert response.status_code == 401


async def test_students_cannot_open_sessions(client, make_student):
    student = await make_student()
    response = await client.post("/api/attendance/sessions", json={"session_name": "Lab"}, headers=auth(student))
    assert response.status_code == 403


async def test_session_flow(client, make_staff, make_student):
    staff = await make_staff()
    present = await make_student(name="Present")
    absent = await make_student(name="Absent")

    created = await client.post("/api/attendance/sessions", json={"session_name": "Morning"}, headers=auth(staff))
    assert created.status_code == 201
    session = created.json()
    assert session["is_active"] is True

    # session-created notifications were delivered after the response
    assert await Notification.find({"kind": "session_created"}).count() == 2

    scan = await client.post("/api/attendance/scan", json={"qr_code": session["qr_code"]}, headers=auth(present))
    assert scan.status_code == 201
    assert scan.json()["status"] == "present"

    again = await client.post("/api/attendance/scan", json={"qr_code": session["qr_code"]}, headers=auth(present))
    assert again.status_code == 409
    assert again.json()["code"] == "AlreadyMarkedError"

    absentees = await client.get(f"/api/attendance/sessions/{session['id']}/absentees", headers=auth(staff))
    assert [a["student_id"] for a in absentees.json()] == [str(absent.id)]

    closed = await client.post(f"/api/attendance/sessions/{session['id']}/deactivate", headers=auth(staff))
    assert closed.status_code == 200
    assert closed.json()["is_active"] is False

    late = await client.post("/api/attendance/scan", json={"qr_code": session["qr_code"]}, headers=auth(absent))
    assert late.status_code == 404

    manual = await client.post(
        f"/api/attendance/sessions/{session['id']}/manual",
        json={"student_id": str(absent.id), "status": "on_duty"},
        headers=auth(staff),
    )
    assert manual.status_code == 201
    assert manual.json()["marked_by"] == str(staff.id)

    stats = await client.get("/api/attendance/stats", headers=auth(staff))
    assert stats.json()["present_count"] == 2
    assert stats.json()["on_duty_count"] == 1
    assert stats.json()["absent_count"] == 0

    report = await client.get(f"/api/attendance/sessions/{session['id']}/report?format=csv", headers=auth(staff))
    assert report.status_code == 200
    assert report.headers["content-type"].startswith("text/csv")
    assert "On Duty" in report.text


async def test_unknown_session_maps_to_404(client, make_staff):
    staff = await make_staff()
    response = await client.get("/api/attendance/sessions/64b000000000000000000000", headers=auth(staff))
    assert response.status_code == 404
    assert response.json()["code"] == "NotFoundError"


async def test_invalid_date_range(client, make_staff):
    staff = await make_staff()
    response = await client.get(
        "/api/attendance/stats",
        params={"start_date": "2024-03-10", "end_date": "2024-03-01"},
        headers=auth(staff),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"


async def test_notifications_about_viewed_session_are_silent(client, make_student):
    student = await make_student()
    await Notification(
        user_id=str(student.id), title="Absent", message="m", kind="absent", metadata={"session_id": "s1"}
    ).insert()

    listed = await client.get(
        "/api/notifications/", params={"viewing_session_id": "s1"}, headers=auth(student)
    )
    assert [n["silent"] for n in listed.json()] == [True]

    unread = await client.get("/api/notifications/unread-count", headers=auth(student))
    assert unread.json() == {"count": 1}


async def test_approve_student(client, make_staff, make_student):
    staff = await make_staff()
    student = await make_student(approved=False)

    pending = await client.get("/api/students/pending", headers=auth(staff))
    assert [s["id"] for s in pending.json()] == [str(student.id)]

    approved = await client.post(f"/api/students/{student.id}/approve", headers=auth(staff))
    assert approved.status_code == 200
    assert approved.json()["is_approved"] is True
