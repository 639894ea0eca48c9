"""QR attendance: sessions, check-in, manual marks, absentees, statistics and reports."""
from datetime import date

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from eduportal.api.deps import Dispatcher, StaffOnly, StudentOnly
from eduportal.models.attendance import (
    Absentee,
    AttendanceRecord,
    AttendanceReport,
    AttendanceSession,
    AttendanceStats,
    ManualMarkRequest,
    ScanRequest,
    SessionCreate,
)
from eduportal.services import attendance, reports

router = APIRouter()


def serialize_session(session: AttendanceSession) -> dict:
    return {
        "id": str(session.id),
        "session_name": session.session_name,
        "date": session.date,
        "time": session.time,
        "qr_code": session.qr_code,
        "created_by": session.created_by,
        "is_active": session.is_active,
        "class_filter": session.class_filter,
        "created_at": session.created_at.isoformat(),
        "deactivated_at": session.deactivated_at.isoformat() if session.deactivated_at else None,
    }


def serialize_record(record: AttendanceRecord) -> dict:
    return {
        "id": str(record.id),
        "session_id": record.session_id,
        "session_name": record.session_name,
        "student_id": record.student_id,
        "student_name": record.student_name,
        "roll_number": record.roll_number,
        "system_number": record.system_number,
        "class": record.student_class,
        "status": record.status.value,
        "marked_by": record.marked_by,
        "marked_at": record.marked_at.isoformat(),
        "date": record.date,
    }


def _report_response(report: AttendanceReport, format: str, name: str) -> StreamingResponse:
    content, media_type, ext = reports.export_report(report, format)
    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename=attendance_report_{name}.{ext}"},
    )


# Sessions


@router.post("/sessions", status_code=201)
async def create_session(data: SessionCreate, user: StaffOnly, dispatcher: Dispatcher):
    session = await attendance.create_session(
        data.session_name, str(user.id), data.class_filter, dispatcher=dispatcher
    )
    return serialize_session(session)


@router.get("/sessions")
async def list_sessions(user: StaffOnly, active: bool | None = None, mine: bool = False):
    sessions = await attendance.list_sessions(active=active, created_by=str(user.id) if mine else None)
    return [serialize_session(s) for s in sessions]


@router.get("/sessions/active")
async def active_session(user: StaffOnly):
    session = await attendance.get_active_session()
    return serialize_session(session) if session else None


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, user: StaffOnly):
    return serialize_session(await attendance.get_session(session_id))


@router.post("/sessions/{session_id}/deactivate")
async def deactivate_session(session_id: str, user: StaffOnly, dispatcher: Dispatcher):
    session = await attendance.deactivate_session(session_id, actor_id=str(user.id), dispatcher=dispatcher)
    return serialize_session(session)


@router.get("/sessions/{session_id}/records")
async def session_records(session_id: str, user: StaffOnly):
    return [serialize_record(r) for r in await attendance.get_session_records(session_id)]


@router.get("/sessions/{session_id}/absentees", response_model=list[Absentee])
async def session_absentees(session_id: str, user: StaffOnly, class_filter: str | None = None):
    return await attendance.get_absentees(session_id, class_filter)


@router.get("/sessions/{session_id}/candidates", response_model=list[Absentee])
async def manual_candidates(session_id: str, user: StaffOnly):
    return await attendance.get_manual_candidates(session_id)


@router.post("/sessions/{session_id}/manual", status_code=201)
async def mark_manual(session_id: str, data: ManualMarkRequest, user: StaffOnly):
    record = await attendance.mark_student_manually(session_id, data.student_id, str(user.id), data.status)
    return serialize_record(record)


@router.get("/sessions/{session_id}/report")
async def session_report(
    session_id: str,
    user: StaffOnly,
    format: str = Query("csv", enum=["csv", "excel", "json"]),
):
    report = await reports.build_session_report(session_id)
    if format == "json":
        return report
    return _report_response(report, format, f"session_{session_id}")


# Check-in


@router.post("/scan", status_code=201)
async def scan(data: ScanRequest, user: StudentOnly):
    record = await attendance.scan_attendance(data.qr_code, user)
    return serialize_record(record)


@router.get("/me")
async def my_attendance(user: StudentOnly):
    records = await attendance.get_student_attendance(str(user.id))
    summary = await attendance.get_student_summary(str(user.id))
    return {
        "summary": summary,
        "records": [serialize_record(r) for r in records],
    }


# Aggregates


@router.get("/stats", response_model=AttendanceStats)
async def stats(user: StaffOnly, start_date: date | None = None, end_date: date | None = None):
    return await attendance.compute_stats(start_date, end_date)


@router.get("/records")
async def records(user: StaffOnly, start_date: date | None = None, end_date: date | None = None):
    if start_date is None and end_date is None:
        items = await attendance.list_records()
    else:
        items = await attendance.get_date_range_records(start_date, end_date)
    return [serialize_record(r) for r in items]


@router.get("/report")
async def date_range_report(
    start_date: date,
    end_date: date,
    user: StaffOnly,
    format: str = Query("csv", enum=["csv", "excel", "json"]),
):
    report = await reports.build_date_range_report(start_date, end_date)
    if format == "json":
        return report
    return _report_response(report, format, f"{start_date}_{end_date}")
