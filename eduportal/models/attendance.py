"""Attendance sessions, records and derived report shapes."""
from datetime import datetime
from enum import Enum
from typing import Optional

import pymongo
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel


class AttendanceStatus(str, Enum):
    PRESENT = "present"  # via QR scan
    ON_DUTY = "on_duty"  # via staff override, excused but counted present


STATUS_LABELS = {
    AttendanceStatus.PRESENT: "Present",
    AttendanceStatus.ON_DUTY: "On Duty",
}


class AttendanceSession(Document):
    """A QR attendance session. Only ever goes active -> inactive."""

    session_name: str
    date: Indexed(str)  # YYYY-MM-DD
    time: str  # hh:mm AM/PM
    qr_code: Indexed(str, unique=True)
    created_by: str
    is_active: bool = True
    class_filter: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    deactivated_at: Optional[datetime] = None

    # Students holding a check-in slot; written only through conditional updates.
    attendee_ids: list[str] = Field(default_factory=list)

    class Settings:
        name = "attendance_sessions"


class AttendanceRecord(Document):
    """Proof that one student attended one session."""

    session_id: Indexed(str)
    session_name: str
    student_id: Indexed(str)
    student_name: str
    roll_number: str = ""
    system_number: Optional[str] = None
    student_class: str = ""
    status: AttendanceStatus = AttendanceStatus.PRESENT
    marked_by: Optional[str] = None  # staff id for manual marks
    marked_at: datetime = Field(default_factory=datetime.utcnow)
    date: Indexed(str)  # YYYY-MM-DD

    class Settings:
        name = "attendance_records"
        indexes = [
            IndexModel(
                [("session_id", pymongo.ASCENDING), ("student_id", pymongo.ASCENDING)],
                name="session_student_unique",
                unique=True,
            ),
        ]


class SessionCreate(BaseModel):
    session_name: str
    class_filter: Optional[str] = None


class ScanRequest(BaseModel):
    qr_code: str


class ManualMarkRequest(BaseModel):
    student_id: str
    status: AttendanceStatus = AttendanceStatus.PRESENT


class Absentee(BaseModel):
    student_id: str
    student_name: str
    roll_number: str = ""
    system_number: Optional[str] = None
    student_class: str = ""


class AttendanceStats(BaseModel):
    sessions_count: int = 0
    present_count: int = 0
    on_duty_count: int = 0
    absent_count: int = 0
    unique_students: int = 0
    attendance_rate: float = 0.0


class StudentSummary(BaseModel):
    student_id: str
    total_sessions: int
    present_count: int
    absent_count: int
    attendance_rate: float


class ReportRow(BaseModel):
    student_id: str
    student_name: str
    roll_number: str = ""
    system_number: Optional[str] = None
    student_class: str = ""
    session_name: str = ""
    date: str = ""
    status: str  # display label: Present / On Duty / Absent
    marked_at: Optional[datetime] = None


class AttendanceReport(BaseModel):
    title: str
    subtitle: str
    present: list[ReportRow] = Field(default_factory=list)
    absent: list[ReportRow] = Field(default_factory=list)
    total_present: int = 0
    total_absent: int = 0
    attendance_rate: float = 0.0
