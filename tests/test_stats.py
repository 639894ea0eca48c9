"""Statistics, date-range scoping and per-student summaries."""
from datetime import date, datetime

import pytest

from eduportal.exceptions import ValidationError
from eduportal.models.attendance import AttendanceRecord, AttendanceSession, AttendanceStatus
from eduportal.services import attendance


@pytest.fixture
def make_session(db):
    counter = {"n": 0}

    async def _make(day, class_filter=None, is_active=False):
        counter["n"] += 1
        session = AttendanceSession(
            session_name=f"Session {counter['n']}",
            date=day,
            time="09:00 AM",
            qr_code=f"SESSION_test{counter['n']}",
            created_by="staff",
            is_active=is_active,
            class_filter=class_filter,
        )
        await session.insert()
        return session

    return _make


async def _record(session, student, status=AttendanceStatus.PRESENT, day=None):
    record = AttendanceRecord(
        session_id=str(session.id),
        session_name=session.session_name,
        student_id=str(student.id),
        student_name=student.name,
        roll_number=student.roll_number,
        student_class=student.class_label,
        status=status,
        date=day or session.date,
    )
    await record.insert()
    return record


def test_attendance_rate():
    assert attendance.attendance_rate(0, 0) == 0.0
    assert attendance.attendance_rate(1, 2) == 33.3
    assert attendance.attendance_rate(3, 0) == 100.0


async def test_stats_of_empty_store(db):
    stats = await attendance.compute_stats()
    assert stats.sessions_count == 0
    assert stats.present_count == 0
    assert stats.absent_count == 0
    assert stats.attendance_rate == 0.0


async def test_stats_count_on_duty_as_attended(make_student, make_session):
    a = await make_student()
    b = await make_student()
    c = await make_student()
    session = await make_session("2024-03-01")
    await _record(session, a)
    await _record(session, b, AttendanceStatus.ON_DUTY)

    stats = await attendance.compute_stats()
    assert stats.sessions_count == 1
    assert stats.present_count == 2
    assert stats.on_duty_count == 1
    assert stats.absent_count == 1
    assert stats.unique_students == 3
    assert stats.attendance_rate == 66.7
    assert [x.student_id for x in await attendance.get_absentees(str(session.id))] == [str(c.id)]


async def test_present_plus_absent_matches_roster_per_session(make_student, make_session, make_class):
    await make_class("CSE-A")
    members = [await make_student(classes="CSE-A") for _ in range(3)]
    await make_student(classes="MECH")
    open_session = await make_session("2024-03-01")
    class_session = await make_session("2024-03-02", class_filter="CSE-A")
    await _record(open_session, members[0])
    await _record(class_session, members[1])

    stats = await attendance.compute_stats()
    # 4 students in the unfiltered session, 3 in the class session
    assert stats.present_count + stats.absent_count == 4 + 3


async def test_date_range_is_inclusive(make_student, make_session):
    student = await make_student()
    before = await make_session("2024-02-29")
    first = await make_session("2024-03-01")
    last = await make_session("2024-03-31")
    after = await make_session("2024-04-01")
    for session in (before, first, last, after):
        await _record(session, student)

    records = await attendance.get_date_range_records("2024-03-01", "2024-03-31")
    assert {r.session_id for r in records} == {str(first.id), str(last.id)}

    stats = await attendance.compute_stats("2024-03-01", "2024-03-31")
    assert stats.sessions_count == 2
    assert stats.present_count == 2
    assert stats.absent_count == 0


async def test_late_manual_mark_stays_with_its_session(make_student, make_session):
    student = await make_student()
    session = await make_session("2024-03-31")
    await _record(session, student, AttendanceStatus.ON_DUTY, day="2024-04-02")

    stats = await attendance.compute_stats("2024-03-01", "2024-03-31")
    assert stats.present_count == 1
    assert stats.absent_count == 0


async def test_date_range_validation(db):
    with pytest.raises(ValidationError):
        await attendance.compute_stats("2024-03-01", None)
    with pytest.raises(ValidationError):
        await attendance.compute_stats("2024-03-10", "2024-03-01")
    with pytest.raises(ValidationError):
        await attendance.get_date_range_records("03/01/2024", "2024-03-02")


async def test_student_summary(make_student, make_session, make_class):
    await make_class("CSE-A")
    student = await make_student(classes="CSE-A")
    attended = await make_session("2024-03-01")
    await make_session("2024-03-02", class_filter="CSE-A")
    await make_session("2024-03-03", class_filter="MECH")
    await _record(attended, student)

    summary = await attendance.get_student_summary(str(student.id))
    assert summary.total_sessions == 2
    assert summary.present_count == 1
    assert summary.absent_count == 1
    assert summary.attendance_rate == 50.0


def test_parse_day_accepts_datetimes():
    assert attendance.parse_day(datetime(2024, 3, 31, 18, 45), "end_date") == "2024-03-31"
    assert attendance.parse_day(date(2024, 3, 1), "start_date") == "2024-03-01"
    assert attendance.parse_day(" 2024-03-01 ", "start_date") == "2024-03-01"


async def test_datetime_end_bound_includes_that_day(make_student, make_session):
    student = await make_student()
    last = await make_session("2024-03-31")
    await _record(last, student)

    records = await attendance.get_date_range_records(datetime(2024, 3, 1, 8, 0), datetime(2024, 3, 31, 8, 0))
    assert [r.session_id for r in records] == [str(last.id)]
