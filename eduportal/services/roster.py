"""Student roster: listing, lookup, approval and device binding."""
from __future__ import annotations

import logging
from datetime import datetime

from beanie import PydanticObjectId
from bson.errors import InvalidId

from eduportal.exceptions import ConflictError, NotFoundError, ValidationError
from eduportal.models.user import User, UserRole, class_key

logger = logging.getLogger(__name__)


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


def _roster_sort_key(student: User):
    return ((student.roll_number or "").casefold(), student.name.casefold())


def filter_by_class(students: list[User], class_filter: str | None) -> list[User]:
    """Restrict students to members of class_filter; no filter keeps everyone."""
    if not class_filter or not class_key(class_filter):
        return list(students)
    return [s for s in students if s.is_member(class_filter)]


async def list_students(
    class_filter: str | None = None,
    approved_only: bool = True,
) -> list[User]:
    query: dict = {"role": UserRole.STUDENT.value}
    if approved_only:
        query["is_approved"] = True
    # class_names holds several sections per student; membership is matched in memory
    students = await User.find(query).to_list()
    return sorted(filter_by_class(students, class_filter), key=_roster_sort_key)


async def get_student(student_id: str) -> User:
    oid = safe_object_id(student_id)
    student = await User.get(oid) if oid else None
    if not student or student.role != UserRole.STUDENT:
        raise NotFoundError("Student not found")
    return student


async def list_staff() -> list[User]:
    staff = await User.find({"role": UserRole.STAFF.value}).to_list()
    return sorted(staff, key=lambda u: u.name.casefold())


async def approve_student(student_id: str) -> User:
    student = await get_student(student_id)
    if student.is_approved:
        return student
    student.is_approved = True
    student.updated_at = datetime.utcnow()
    await student.save()
    logger.info("Student %s approved", student_id)
    return student


async def reset_device(student_id: str) -> User:
    student = await get_student(student_id)
    student.device_id = None
    student.updated_at = datetime.utcnow()
    await student.save()
    logger.info("Device binding reset for student %s", student_id)
    return student


async def bind_device(user: User, device_id: str) -> User:
    """Bind the first device a student signs in from; a different one needs a staff reset."""
    device_id = (device_id or "").strip()
    if not device_id:
        raise ValidationError("device_id is required")
    if user.role != UserRole.STUDENT:
        return user
    if user.device_id and user.device_id != device_id:
        logger.warning("Student %s attempted sign-in from a new device", user.id)
        raise ConflictError("This account is bound to another device. Ask staff to reset it.")
    if user.device_id != device_id:
        user.device_id = device_id
        user.updated_at = datetime.utcnow()
        await user.save()
    return user
