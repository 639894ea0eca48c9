"""Class / section management and per-class statistics."""
from __future__ import annotations

import logging
from datetime import datetime

from pymongo.errors import DuplicateKeyError

from eduportal.exceptions import ConflictError, NotFoundError, ValidationError
from eduportal.models.attendance import AttendanceRecord, AttendanceSession
from eduportal.models.school_class import SchoolClass, SchoolClassCreate, SchoolClassUpdate
from eduportal.models.user import User, class_key
from eduportal.services import roster
from eduportal.services.attendance import attendance_rate

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "A class with this name already exists"


async def create_class(data: SchoolClassCreate, created_by: str) -> SchoolClass:
    name = (data.class_name or "").strip()
    if not name:
        raise ValidationError("Please enter a class name")
    if "," in name:
        raise ValidationError("Class names cannot contain commas")
    school_class = SchoolClass(
        class_name=name,
        name_key=class_key(name),
        description=data.description,
        year=data.year,
        created_by=created_by,
    )
    try:
        await school_class.insert()
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_MESSAGE)
    logger.info("Class %s created by %s", name, created_by)
    return school_class


async def list_classes(active_only: bool = True) -> list[SchoolClass]:
    query = {"is_active": True} if active_only else {}
    return await SchoolClass.find(query).sort("name_key").to_list()


async def list_classes_by_staff(staff_id: str) -> list[SchoolClass]:
    return await SchoolClass.find(SchoolClass.created_by == staff_id).sort("name_key").to_list()


async def get_class(class_id: str) -> SchoolClass:
    oid = roster.safe_object_id(class_id)
    school_class = await SchoolClass.get(oid) if oid else None
    if not school_class:
        raise NotFoundError("Class not found")
    return school_class


async def update_class(class_id: str, data: SchoolClassUpdate) -> SchoolClass:
    school_class = await get_class(class_id)
    update_data = data.model_dump(exclude_unset=True)
    if "class_name" in update_data:
        name = (update_data["class_name"] or "").strip()
        if not name or "," in name:
            raise ValidationError("Invalid class name")
        update_data["class_name"] = name
        update_data["name_key"] = class_key(name)
    for key, value in update_data.items():
        setattr(school_class, key, value)
    school_class.updated_at = datetime.utcnow()
    try:
        await school_class.save()
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_MESSAGE)
    return school_class


async def delete_class(class_id: str) -> None:
    """Soft delete: the class disappears from pickers, history stays intact."""
    school_class = await get_class(class_id)
    school_class.is_active = False
    school_class.updated_at = datetime.utcnow()
    await school_class.save()


async def get_class_students(class_name: str) -> list[User]:
    return await roster.list_students(class_name)


async def get_class_stats(class_name: str) -> dict:
    students = await roster.list_students(class_name)
    sessions = await AttendanceSession.find({"class_filter": {"$ne": None}}).to_list()
    session_ids = [str(s.id) for s in sessions if class_key(s.class_filter) == class_key(class_name)]
    total_attendance = (
        await AttendanceRecord.find({"session_id": {"$in": session_ids}}).count() if session_ids else 0
    )
    expected = len(session_ids) * len(students)
    return {
        "class_name": class_name,
        "total_students": len(students),
        "total_sessions": len(session_ids),
        "total_attendance": total_attendance,
        "average_attendance": attendance_rate(total_attendance, expected - total_attendance) if expected else 0.0,
    }
