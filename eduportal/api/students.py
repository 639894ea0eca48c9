"""Student roster for staff: listing, approval, device reset."""
import logging

from fastapi import APIRouter, Query

from eduportal.api.deps import StaffOnly
from eduportal.models.notification import NotificationKind
from eduportal.models.user import UserOut
from eduportal.services import notifications, roster

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[UserOut])
async def list_students(
    user: StaffOnly,
    class_name: str | None = Query(None, description="Only members of this class"),
    include_unapproved: bool = False,
):
    students = await roster.list_students(class_name, approved_only=not include_unapproved)
    return [UserOut.from_user(s) for s in students]


@router.get("/pending", response_model=list[UserOut])
async def list_pending_students(user: StaffOnly):
    students = await roster.list_students(approved_only=False)
    return [UserOut.from_user(s) for s in students if not s.is_approved]


@router.get("/{student_id}", response_model=UserOut)
async def get_student(student_id: str, user: StaffOnly):
    return UserOut.from_user(await roster.get_student(student_id))


@router.post("/{student_id}/approve", response_model=UserOut)
async def approve_student(student_id: str, user: StaffOnly):
    was_approved = (await roster.get_student(student_id)).is_approved
    student = await roster.approve_student(student_id)
    if not was_approved:
        try:
            await notifications.notify(
                [student_id],
                "Account approved",
                f"{user.name} approved your account. You can now mark attendance.",
                NotificationKind.ACCOUNT_APPROVED,
            )
        except Exception:
            logger.exception("Could not notify student %s of approval", student_id)
    return UserOut.from_user(student)


@router.post("/{student_id}/reset-device", response_model=UserOut)
async def reset_device(student_id: str, user: StaffOnly):
    return UserOut.from_user(await roster.reset_device(student_id))
