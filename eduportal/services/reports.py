"""Session and date-range attendance reports, exported as CSV or Excel."""
from __future__ import annotations

import io
from datetime import date

import pandas as pd

from eduportal.exceptions import NotFoundError
from eduportal.models.attendance import (
    STATUS_LABELS,
    Absentee,
    AttendanceRecord,
    AttendanceReport,
    AttendanceSession,
    ReportRow,
)
from eduportal.services import attendance, roster
from eduportal.services.attendance import AttendanceScope, attendance_rate

ABSENT_LABEL = "Absent"

REPORT_COLUMNS = [
    "Student Name",
    "Roll Number",
    "System Number",
    "Class",
    "Session",
    "Date",
    "Status",
    "Marked At",
]


def _present_row(record: AttendanceRecord) -> ReportRow:
    return ReportRow(
        student_id=record.student_id,
        student_name=record.student_name,
        roll_number=record.roll_number,
        system_number=record.system_number,
        student_class=record.student_class,
        session_name=record.session_name,
        date=record.date,
        status=STATUS_LABELS[record.status],
        marked_at=record.marked_at,
    )


def _absent_row(absentee: Absentee, session: AttendanceSession) -> ReportRow:
    return ReportRow(
        student_id=absentee.student_id,
        student_name=absentee.student_name,
        roll_number=absentee.roll_number,
        system_number=absentee.system_number,
        student_class=absentee.student_class,
        session_name=session.session_name,
        date=session.date,
        status=ABSENT_LABEL,
    )


def _build(title: str, subtitle: str, scope: AttendanceScope) -> AttendanceReport:
    present = [_present_row(r) for r in sorted(scope.records, key=lambda r: (r.date, r.marked_at))]
    absent: list[ReportRow] = []
    for session in scope.sessions:
        absent.extend(_absent_row(a, session) for a in scope.absentees(session))
    return AttendanceReport(
        title=title,
        subtitle=subtitle,
        present=present,
        absent=absent,
        total_present=len(present),
        total_absent=len(absent),
        attendance_rate=attendance_rate(len(present), len(absent)),
    )


async def build_session_report(session_id: str) -> AttendanceReport:
    session = await attendance.get_session(session_id)
    records = await attendance.get_session_records(session_id)
    students = await roster.list_students()
    scope = AttendanceScope(sessions=[session], records=records, students=students)
    return _build("Session Attendance Report", session.session_name, scope)


async def build_date_range_report(start_date: date | str, end_date: date | str) -> AttendanceReport:
    scope = await attendance.load_scope(start_date, end_date)
    start = attendance.parse_day(start_date, "start_date")
    end = attendance.parse_day(end_date, "end_date")
    return _build("Date Range Attendance Report", f"{start} to {end}", scope)


def report_frame(report: AttendanceReport) -> pd.DataFrame:
    data = [
        {
            "Student Name": row.student_name,
            "Roll Number": row.roll_number,
            "System Number": row.system_number or "",
            "Class": row.student_class,
            "Session": row.session_name,
            "Date": row.date,
            "Status": row.status,
            "Marked At": row.marked_at.isoformat() if row.marked_at else "",
        }
        for row in report.present + report.absent
    ]
    return pd.DataFrame(data, columns=REPORT_COLUMNS)


def export_report(report: AttendanceReport, format: str = "csv") -> tuple[bytes, str, str]:
    """Render a report; returns (content, media_type, file extension)."""
    if not report.present and not report.absent:
        raise NotFoundError("No records to generate report")

    df = report_frame(report)
    if format == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        return stream.getvalue().encode("utf-8"), "text/csv", "csv"

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Attendance")
        pd.DataFrame(
            [
                {"Metric": "Present", "Value": report.total_present},
                {"Metric": "Absent", "Value": report.total_absent},
                {"Metric": "Attendance Rate (%)", "Value": report.attendance_rate},
            ]
        ).to_excel(writer, index=False, sheet_name="Summary")
    return (
        output.getvalue(),
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "xlsx",
    )
