from datetime import datetime
from enum import Enum
from typing import Any

from beanie import Document, Indexed
from pydantic import Field


class NotificationKind(str, Enum):
    SESSION_CREATED = "session_created"
    ABSENT = "absent"
    FILE_RECEIVED = "file_received"
    ACCOUNT_APPROVED = "account_approved"


class Notification(Document):
    """In-app notification; push delivery mirrors it best effort."""

    user_id: Indexed(str)
    title: str
    message: str
    kind: NotificationKind
    is_read: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notifications"
