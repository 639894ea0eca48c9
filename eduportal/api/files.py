"""Document exchange between students and staff."""
from fastapi import APIRouter, File, Form, UploadFile

from eduportal.api.deps import CurrentUser
from eduportal.models.file import UploadedFile
from eduportal.services import files, roster

router = APIRouter()


def serialize_file(uploaded: UploadedFile) -> dict:
    return {
        "id": str(uploaded.id),
        "student_id": uploaded.student_id,
        "student_name": uploaded.student_name,
        "recipient_id": uploaded.recipient_id,
        "recipient_name": uploaded.recipient_name,
        "file_name": uploaded.file_name,
        "file_type": uploaded.file_type,
        "file_size": uploaded.file_size,
        "url": uploaded.url,
        "uploaded_at": uploaded.uploaded_at.isoformat(),
    }


@router.get("/staff")
async def list_staff(user: CurrentUser):
    """Recipients a student can send documents to."""
    return [
        {"id": str(s.id), "name": s.name, "department": s.department}
        for s in await roster.list_staff()
    ]


@router.get("/")
async def list_files(user: CurrentUser):
    return [serialize_file(f) for f in await files.list_files_for_user(user)]


@router.post("/", status_code=201)
async def upload_file(
    user: CurrentUser,
    file: UploadFile = File(...),
    recipient_id: str | None = Form(None),
):
    body = await file.read()
    uploaded = await files.upload_file(
        user,
        file_name=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        body=body,
        recipient_id=recipient_id,
    )
    return serialize_file(uploaded)


@router.delete("/{file_id}", status_code=204)
async def delete_file(file_id: str, user: CurrentUser):
    await files.delete_file(file_id, user)
