"""In-app notifications and event delivery."""
import pytest

from eduportal.exceptions import NotFoundError
from eduportal.models.notification import Notification, NotificationKind
from eduportal.services import attendance, events, fcm, notifications
from eduportal.services.events import EventDispatcher, SessionCreated, SessionDeactivated


@pytest.fixture
def pushes(monkeypatch):
    sent = []

    async def fake_send_push(tokens, title, body, data=None):
        sent.append({"tokens": list(tokens), "title": title, "data": data})
        return len(tokens)

    monkeypatch.setattr(fcm, "send_push", fake_send_push)
    return sent


async def test_notify_dedupes_recipients_and_pushes(make_student, pushes):
    student = await make_student(fcm_tokens=["tok-1", "tok-2"])
    sid = str(student.id)

    count = await notifications.notify([sid, sid, ""], "Hi", "Body", NotificationKind.ABSENT, {"session_id": "s1"})

    assert count == 1
    assert await notifications.unread_count(sid) == 1
    assert pushes[0]["tokens"] == ["tok-1", "tok-2"]
    assert pushes[0]["data"] == {"type": "absent", "session_id": "s1"}


async def test_notify_nobody_is_a_noop(db, pushes):
    assert await notifications.notify([], "Hi", "Body", NotificationKind.ABSENT) == 0
    assert pushes == []


async def test_mark_as_read(make_student, pushes):
    student = await make_student()
    sid = str(student.id)
    await notifications.notify([sid], "One", "Body", NotificationKind.SESSION_CREATED)
    await notifications.notify([sid], "Two", "Body", NotificationKind.SESSION_CREATED)

    first = (await notifications.list_notifications(sid))[0]
    read = await notifications.mark_as_read(str(first.id), sid)
    assert read.is_read
    assert await notifications.unread_count(sid) == 1

    with pytest.raises(NotFoundError):
        await notifications.mark_as_read(str(first.id), "someone-else")

    await notifications.mark_all_as_read(sid)
    assert await notifications.unread_count(sid) == 0


def test_should_alert_suppresses_viewed_session():
    about_session = Notification.model_construct(
        user_id="u", title="t", message="m", kind=NotificationKind.ABSENT, metadata={"session_id": "s1"}
    )
    general = Notification.model_construct(
        user_id="u", title="t", message="m", kind=NotificationKind.FILE_RECEIVED, metadata={}
    )

    assert not notifications.should_alert(about_session, ["s1"])
    assert notifications.should_alert(about_session, ["s2"])
    assert notifications.should_alert(about_session)
    assert notifications.should_alert(general, ["s1"])


async def test_session_created_notifies_class_roster(make_student, make_class, pushes):
    await make_class("CSE-A")
    member = await make_student(classes="CSE-A")
    outsider = await make_student(classes="MECH")
    pending = await make_student(classes="CSE-A", approved=False)

    await events.handle_event(
        SessionCreated(session_id="s1", session_name="Lab", class_filter="CSE-A", created_by="staff")
    )

    assert await notifications.unread_count(str(member.id)) == 1
    assert await notifications.unread_count(str(outsider.id)) == 0
    assert await notifications.unread_count(str(pending.id)) == 0


async def test_deactivation_notifies_only_absentees(make_staff, make_student, pushes):
    staff = await make_staff()
    present = await make_student()
    absent = await make_student()
    dispatcher = EventDispatcher()

    session = await attendance.create_session("Morning", str(staff.id), dispatcher=dispatcher)
    await attendance.scan_attendance(session.qr_code, present)
    await attendance.deactivate_session(str(session.id), dispatcher=dispatcher)

    absent_rows = await Notification.find({"kind": NotificationKind.ABSENT.value}).to_list()
    assert [n.user_id for n in absent_rows] == [str(absent.id)]
    assert absent_rows[0].metadata["session_id"] == str(session.id)


async def test_deliver_swallows_handler_errors():
    async def broken(event):
        raise RuntimeError("boom")

    await events.deliver(SessionDeactivated(session_id="s1", session_name="Lab"), broken)
