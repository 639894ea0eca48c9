"""Beanie document models and Pydantic schemas."""
from eduportal.models.user import User, UserRole, UserCreate, UserOut, ProfileUpdate
from eduportal.models.school_class import SchoolClass, SchoolClassCreate, SchoolClassUpdate
from eduportal.models.attendance import (
    AttendanceSession,
    AttendanceRecord,
    AttendanceStatus,
    Absentee,
    AttendanceStats,
    AttendanceReport,
)
from eduportal.models.notification import Notification, NotificationKind
from eduportal.models.file import UploadedFile

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserOut",
    "ProfileUpdate",
    "SchoolClass",
    "SchoolClassCreate",
    "SchoolClassUpdate",
    "AttendanceSession",
    "AttendanceRecord",
    "AttendanceStatus",
    "Absentee",
    "AttendanceStats",
    "AttendanceReport",
    "Notification",
    "NotificationKind",
    "UploadedFile",
]
