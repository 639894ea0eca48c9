from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import Field


class UploadedFile(Document):
    """A document a student sent to a staff member."""

    student_id: Indexed(str)
    student_name: str
    recipient_id: Optional[str] = None
    recipient_name: Optional[str] = None
    file_name: str
    file_type: str
    file_size: int
    url: str
    storage_key: str
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "files"
