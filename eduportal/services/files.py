"""Document exchange: students upload files addressed to a staff member."""
from __future__ import annotations

import logging

from eduportal.config import settings
from eduportal.exceptions import ForbiddenError, NotFoundError, ValidationError
from eduportal.models.file import UploadedFile
from eduportal.models.notification import NotificationKind
from eduportal.models.user import User, UserRole
from eduportal.services import notifications, roster
from eduportal.services.s3 import delete_from_s3, upload_document_to_s3

logger = logging.getLogger(__name__)


async def upload_file(
    owner: User,
    *,
    file_name: str,
    content_type: str,
    body: bytes,
    recipient_id: str | None = None,
) -> UploadedFile:
    file_name = (file_name or "").strip()
    if not file_name:
        raise ValidationError("File name is required")
    if not body:
        raise ValidationError("File is empty")
    if len(body) > settings.max_upload_bytes:
        raise ValidationError(f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit")

    recipient = None
    if recipient_id:
        oid = roster.safe_object_id(recipient_id)
        recipient = await User.get(oid) if oid else None
        if not recipient or recipient.role != UserRole.STAFF:
            raise ValidationError("Recipient must be a staff member")

    url, key = await upload_document_to_s3(
        body,
        student_id=str(owner.id),
        filename=file_name,
        content_type=content_type,
    )
    uploaded = UploadedFile(
        student_id=str(owner.id),
        student_name=owner.name,
        recipient_id=str(recipient.id) if recipient else None,
        recipient_name=recipient.name if recipient else None,
        file_name=file_name,
        file_type=content_type or "application/octet-stream",
        file_size=len(body),
        url=url,
        storage_key=key,
    )
    await uploaded.insert()
    logger.info("File %s uploaded by %s", uploaded.id, owner.id)

    if recipient:
        try:
            await notifications.notify(
                [str(recipient.id)],
                "New document received",
                f"{owner.name} sent you {file_name}.",
                NotificationKind.FILE_RECEIVED,
                {"file_id": str(uploaded.id)},
            )
        except Exception:
            logger.exception("Could not notify recipient of file %s", uploaded.id)
    return uploaded


async def list_files_for_user(user: User) -> list[UploadedFile]:
    """Students see their own uploads, staff see what was sent to them."""
    if user.role == UserRole.STAFF:
        query = {"recipient_id": str(user.id)}
    else:
        query = {"student_id": str(user.id)}
    return await UploadedFile.find(query).sort("-uploaded_at").to_list()


async def delete_file(file_id: str, user: User) -> None:
    oid = roster.safe_object_id(file_id)
    uploaded = await UploadedFile.get(oid) if oid else None
    if not uploaded:
        raise NotFoundError("File not found")
    if user.role != UserRole.STAFF and uploaded.student_id != str(user.id):
        raise ForbiddenError("You can only delete your own files")
    await uploaded.delete()
    await delete_from_s3(uploaded.storage_key)
