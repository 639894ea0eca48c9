"""Attendance core: session lifecycle, exactly-once check-in, absentees and statistics.

A session is created active and flips to inactive exactly once. A record exists
at most once per (session, student): the session document holds the check-in
slots (``attendee_ids``) and is only ever changed through conditional updates,
so "still active" and "not yet marked" are decided in one atomic step. The
unique (session_id, student_id) index on records backs this up.

Absentees are never stored. They are the session's roster (approved students,
restricted to the class filter) minus the students holding a record, computed
on every read.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from eduportal.exceptions import (
    AlreadyMarkedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SessionInactiveError,
    StorageUnavailableError,
    ValidationError,
)
from eduportal.models.attendance import (
    Absentee,
    AttendanceRecord,
    AttendanceSession,
    AttendanceStats,
    AttendanceStatus,
    StudentSummary,
)
from eduportal.models.school_class import SchoolClass
from eduportal.models.user import User, UserRole, class_key
from eduportal.services import events, roster
from eduportal.services.events import EventDispatcher, SessionCreated, SessionDeactivated

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "SESSION_"


def new_join_token() -> str:
    return f"{TOKEN_PREFIX}{uuid.uuid4().hex}"


def _today() -> str:
    return date.today().isoformat()


def _clock() -> str:
    return datetime.now().strftime("%I:%M %p")


def parse_day(value: date | str | None, field_name: str) -> str:
    """Normalise a calendar day to YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat((value or "").strip()).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid {field_name} (expected YYYY-MM-DD)")


def attendance_rate(present: int, absent: int) -> float:
    total = present + absent
    if total <= 0:
        return 0.0
    return round(present / total * 100, 1)


async def _publish(dispatcher: Optional[EventDispatcher], event) -> None:
    try:
        await (dispatcher or events.default_dispatcher).publish(event)
    except Exception:
        logger.exception("Could not publish %s for session %s", type(event).__name__, event.session_id)


def _collection():
    return AttendanceSession.get_motor_collection()


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


async def get_session(session_id: str) -> AttendanceSession:
    oid = roster.safe_object_id(session_id)
    session = await AttendanceSession.get(oid) if oid else None
    if not session:
        raise NotFoundError("Attendance session not found")
    return session


async def _resolve_class_filter(class_filter: str | None) -> str | None:
    if not class_filter or not class_key(class_filter):
        return None
    school_class = await SchoolClass.find_one({"name_key": class_key(class_filter), "is_active": True})
    if not school_class:
        raise ValidationError(f"Unknown class '{class_filter.strip()}'")
    return school_class.class_name


async def create_session(
    name: str,
    creator_id: str,
    class_filter: str | None = None,
    dispatcher: Optional[EventDispatcher] = None,
) -> AttendanceSession:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter a session name")
    if not creator_id:
        raise ValidationError("creator_id is required")

    session = AttendanceSession(
        session_name=name,
        date=_today(),
        time=_clock(),
        qr_code=new_join_token(),
        created_by=creator_id,
        is_active=True,
        class_filter=await _resolve_class_filter(class_filter),
    )
    try:
        await session.insert()
    except PyMongoError as e:
        raise StorageUnavailableError() from e
    logger.info("Session %s (%s) created by %s", session.id, name, creator_id)

    await _publish(
        dispatcher,
        SessionCreated(
            session_id=str(session.id),
            session_name=session.session_name,
            class_filter=session.class_filter,
            created_by=creator_id,
        ),
    )
    return session


async def deactivate_session(
    session_id: str,
    actor_id: str | None = None,
    dispatcher: Optional[EventDispatcher] = None,
) -> AttendanceSession:
    """Close a session for check-in. Repeated calls are no-ops and notify nobody."""
    session = await get_session(session_id)
    if actor_id is not None and session.created_by != actor_id:
        raise ForbiddenError("Only the staff member who created this session can end it")

    deactivated_at = datetime.utcnow()
    try:
        result = await _collection().update_one(
            {"_id": session.id, "is_active": True},
            {"$set": {"is_active": False, "deactivated_at": deactivated_at}},
        )
    except PyMongoError as e:
        raise StorageUnavailableError() from e

    if result.modified_count == 0:
        logger.info("Session %s already inactive; nothing to do", session_id)
        return await get_session(session_id)

    logger.info("Session %s deactivated", session_id)
    session.is_active = False
    session.deactivated_at = deactivated_at
    # absentees are resolved by the event handler, after the flip and off the caller's path
    await _publish(
        dispatcher,
        SessionDeactivated(session_id=str(session.id), session_name=session.session_name),
    )
    return session


async def list_sessions(active: bool | None = None, created_by: str | None = None) -> list[AttendanceSession]:
    query: dict = {}
    if active is not None:
        query["is_active"] = active
    if created_by:
        query["created_by"] = created_by
    return await AttendanceSession.find(query).sort("-created_at").to_list()


async def get_active_session() -> AttendanceSession | None:
    """Most recent session still open today."""
    return await (
        AttendanceSession.find({"is_active": True, "date": _today()})
        .sort("-created_at")
        .first_or_none()
    )


async def find_active_session_by_token(token: str) -> AttendanceSession:
    token = (token or "").strip()
    if not token:
        raise ValidationError("Empty QR code")
    session = await AttendanceSession.find_one({"qr_code": token, "is_active": True})
    if not session:
        raise NotFoundError("This QR code is not valid or has expired")
    return session


# ---------------------------------------------------------------------------
# Check-in (scan and manual)
# ---------------------------------------------------------------------------


def _check_eligible(session: AttendanceSession, student: User) -> None:
    if not student.is_approved:
        raise ForbiddenError("Your account is awaiting staff approval")
    if session.class_filter and not student.is_member(session.class_filter):
        raise ForbiddenError(f"This session is only for {session.class_filter}")


async def _claim_slot(
    session: AttendanceSession,
    student_id: str,
    require_active: bool,
    reclaim: bool = True,
) -> None:
    query: dict = {"_id": session.id, "attendee_ids": {"$ne": student_id}}
    if require_active:
        query["is_active"] = True
    try:
        result = await _collection().update_one(query, {"$push": {"attendee_ids": student_id}})
    except PyMongoError as e:
        raise StorageUnavailableError() from e
    if result.modified_count == 1:
        return

    current = await AttendanceSession.get(session.id)
    if current is None:
        raise NotFoundError("Attendance session not found")
    if student_id in current.attendee_ids:
        record = await AttendanceRecord.find_one({"session_id": str(session.id), "student_id": student_id})
        if record or not reclaim:
            raise AlreadyMarkedError()
        # slot left behind by a check-in that never wrote its record
        logger.warning("Reclaiming orphaned check-in slot of %s in session %s", student_id, session.id)
        await _release_slot(session, student_id)
        return await _claim_slot(session, student_id, require_active, reclaim=False)
    if require_active and not current.is_active:
        raise SessionInactiveError()
    raise ConflictError("Could not reserve a check-in slot, please retry")


async def _release_slot(session: AttendanceSession, student_id: str) -> None:
    try:
        await _collection().update_one({"_id": session.id}, {"$pull": {"attendee_ids": student_id}})
    except PyMongoError:
        logger.exception("Could not release check-in slot of %s in session %s", student_id, session.id)


async def _insert_record(
    session: AttendanceSession,
    record: AttendanceRecord,
    require_active: bool,
) -> AttendanceRecord:
    existing = await AttendanceRecord.find_one(
        {"session_id": record.session_id, "student_id": record.student_id}
    )
    if existing:
        raise AlreadyMarkedError()

    await _claim_slot(session, record.student_id, require_active)
    try:
        await record.insert()
    except DuplicateKeyError:
        raise AlreadyMarkedError()
    except PyMongoError as e:
        await _release_slot(session, record.student_id)
        raise StorageUnavailableError() from e
    except BaseException:
        # cancellation or encoding failure: no record was written, give the slot back
        await asyncio.shield(_release_slot(session, record.student_id))
        raise

    logger.info(
        "Attendance %s for student %s in session %s",
        record.status.value,
        record.student_id,
        record.session_id,
    )
    return record


async def mark_attendance(
    session_id: str,
    session_name: str,
    student_id: str,
    student_name: str,
    roll_number: str,
    student_class: str,
    system_number: str | None = None,
) -> AttendanceRecord:
    """Scan path: the session must still be active when the slot is taken."""
    session = await get_session(session_id)
    student = await roster.get_student(student_id)
    _check_eligible(session, student)
    if not session.is_active:
        logger.warning("Rejected check-in of %s: session %s inactive", student_id, session_id)
        raise SessionInactiveError()

    record = AttendanceRecord(
        session_id=str(session.id),
        session_name=session_name or session.session_name,
        student_id=student_id,
        student_name=student_name,
        roll_number=roll_number or "",
        system_number=system_number,
        student_class=student_class or "",
        status=AttendanceStatus.PRESENT,
        date=_today(),
    )
    return await _insert_record(session, record, require_active=True)


async def scan_attendance(token: str, student: User) -> AttendanceRecord:
    """Resolve a scanned join token and check the student in with their profile data."""
    session = await find_active_session_by_token(token)
    return await mark_attendance(
        str(session.id),
        session.session_name,
        str(student.id),
        student.name,
        student.roll_number or "",
        session.class_filter or student.class_label,
        student.system_number,
    )


async def mark_manual_attendance(
    session_id: str,
    session_name: str,
    student_id: str,
    student_name: str,
    roll_number: str,
    student_class: str,
    marked_by: str,
    status: AttendanceStatus | str,
    system_number: str | None = None,
) -> AttendanceRecord:
    """Staff override for failed scans; works on open and closed sessions alike."""
    try:
        status = AttendanceStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid attendance status '{status}'")

    staff_oid = roster.safe_object_id(marked_by)
    staff = await User.get(staff_oid) if staff_oid else None
    if not staff or staff.role != UserRole.STAFF:
        raise ForbiddenError("Only staff can mark attendance manually")

    session = await get_session(session_id)
    student = await roster.get_student(student_id)
    _check_eligible(session, student)

    record = AttendanceRecord(
        session_id=str(session.id),
        session_name=session_name or session.session_name,
        student_id=student_id,
        student_name=student_name,
        roll_number=roll_number or "",
        system_number=system_number,
        student_class=student_class or "",
        status=status,
        marked_by=marked_by,
        date=_today(),
    )
    return await _insert_record(session, record, require_active=False)


async def mark_student_manually(
    session_id: str,
    student_id: str,
    marked_by: str,
    status: AttendanceStatus | str = AttendanceStatus.PRESENT,
) -> AttendanceRecord:
    """Manual mark filled in from the roster profile of the student."""
    session = await get_session(session_id)
    student = await roster.get_student(student_id)
    return await mark_manual_attendance(
        str(session.id),
        session.session_name,
        str(student.id),
        student.name,
        student.roll_number or "",
        session.class_filter or student.class_label,
        marked_by,
        status,
        student.system_number,
    )


# ---------------------------------------------------------------------------
# Absentees
# ---------------------------------------------------------------------------


def compute_absentees(
    students: Iterable[User],
    class_filter: str | None,
    attended_ids: set[str],
) -> list[Absentee]:
    """Roster of the class filter minus the students who hold a record."""
    return [
        Absentee(
            student_id=str(s.id),
            student_name=s.name,
            roll_number=s.roll_number or "",
            system_number=s.system_number,
            student_class=s.class_label,
        )
        for s in roster.filter_by_class(list(students), class_filter)
        if str(s.id) not in attended_ids
    ]


async def _attended_ids(session_id: str) -> set[str]:
    records = await AttendanceRecord.find(AttendanceRecord.session_id == session_id).to_list()
    return {r.student_id for r in records}


async def get_absentees(session_id: str, class_filter: str | None = None) -> list[Absentee]:
    """Absentees of a session; class_filter defaults to the session's own."""
    session = await get_session(session_id)
    attended = await _attended_ids(str(session.id))
    students = await roster.list_students()
    return compute_absentees(students, class_filter or session.class_filter, attended)


async def get_manual_candidates(session_id: str) -> list[Absentee]:
    return await get_absentees(session_id)


# ---------------------------------------------------------------------------
# Records, statistics and scoping
# ---------------------------------------------------------------------------


async def get_session_records(session_id: str) -> list[AttendanceRecord]:
    session = await get_session(session_id)
    return await AttendanceRecord.find(AttendanceRecord.session_id == str(session.id)).sort("marked_at").to_list()


async def list_records() -> list[AttendanceRecord]:
    return await AttendanceRecord.find_all().sort("-marked_at").to_list()


async def get_student_attendance(student_id: str) -> list[AttendanceRecord]:
    return await AttendanceRecord.find(AttendanceRecord.student_id == student_id).sort("-marked_at").to_list()


def _date_range(start_date: date | str | None, end_date: date | str | None) -> tuple[str, str] | None:
    if start_date is None and end_date is None:
        return None
    if start_date is None or end_date is None:
        raise ValidationError("Both start_date and end_date are required for a date range")
    start = parse_day(start_date, "start_date")
    end = parse_day(end_date, "end_date")
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    return start, end


async def get_date_range_records(start_date: date | str, end_date: date | str) -> list[AttendanceRecord]:
    """Records marked between the two days, both ends included."""
    start, end = _date_range(start_date, end_date)
    return await AttendanceRecord.find({"date": {"$gte": start, "$lte": end}}).sort("-marked_at").to_list()


@dataclass
class AttendanceScope:
    """Sessions in scope, their records, and the roster they are diffed against."""

    sessions: list[AttendanceSession]
    records: list[AttendanceRecord]
    students: list[User]
    attended: dict[str, set[str]] = field(default_factory=dict)

    def __post_init__(self):
        for r in self.records:
            self.attended.setdefault(r.session_id, set()).add(r.student_id)

    def absentees(self, session: AttendanceSession) -> list[Absentee]:
        return compute_absentees(self.students, session.class_filter, self.attended.get(str(session.id), set()))


async def load_scope(start_date: date | str | None = None, end_date: date | str | None = None) -> AttendanceScope:
    bounds = _date_range(start_date, end_date)
    query: dict = {}
    if bounds:
        query["date"] = {"$gte": bounds[0], "$lte": bounds[1]}
    sessions = await AttendanceSession.find(query).sort("-created_at").to_list()
    session_ids = [str(s.id) for s in sessions]
    # records follow their session's day, so late manual marks stay with their session
    records = await AttendanceRecord.find({"session_id": {"$in": session_ids}}).to_list() if session_ids else []
    students = await roster.list_students()
    return AttendanceScope(sessions=sessions, records=records, students=students)


def summarize(scope: AttendanceScope) -> AttendanceStats:
    absent_count = 0
    absent_ids: set[str] = set()
    for session in scope.sessions:
        absentees = scope.absentees(session)
        absent_count += len(absentees)
        absent_ids.update(a.student_id for a in absentees)

    present_count = len(scope.records)
    on_duty_count = sum(1 for r in scope.records if r.status == AttendanceStatus.ON_DUTY)
    unique_students = {r.student_id for r in scope.records} | absent_ids
    return AttendanceStats(
        sessions_count=len(scope.sessions),
        present_count=present_count,
        on_duty_count=on_duty_count,
        absent_count=absent_count,
        unique_students=len(unique_students),
        attendance_rate=attendance_rate(present_count, absent_count),
    )


async def compute_stats(
    start_date: date | str | None = None,
    end_date: date | str | None = None,
) -> AttendanceStats:
    """Global statistics, or those of sessions dated within [start_date, end_date]."""
    return summarize(await load_scope(start_date, end_date))


async def get_student_summary(student_id: str) -> StudentSummary:
    student = await roster.get_student(student_id)
    sessions = await AttendanceSession.find_all().to_list()
    applicable = {
        str(s.id) for s in sessions if not s.class_filter or student.is_member(s.class_filter)
    }
    records = await get_student_attendance(student_id)
    present = len({r.session_id for r in records} & applicable)
    absent = len(applicable) - present
    return StudentSummary(
        student_id=student_id,
        total_sessions=len(applicable),
        present_count=present,
        absent_count=absent,
        attendance_rate=attendance_rate(present, absent),
    )
