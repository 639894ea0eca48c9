"""Student and staff accounts."""
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field, field_validator


class UserRole(str, Enum):
    STUDENT = "student"
    STAFF = "staff"


def class_key(name: str) -> str:
    """Comparison key for class-section names: trimmed, case-insensitive."""
    return (name or "").strip().casefold()


def normalize_class_names(value: str | Iterable[str] | None) -> list[str]:
    """Split a comma-joined value (or flatten a list) into distinct class names.

    The first spelling of a name wins; later case variants are dropped.
    """
    if value is None:
        return []
    raw_items = value.split(",") if isinstance(value, str) else list(value)
    result: list[str] = []
    seen: set[str] = set()
    for raw in raw_items:
        for part in (raw or "").split(","):
            name = part.strip()
            key = class_key(name)
            if key and key not in seen:
                seen.add(key)
                result.append(name)
    return result


class User(Document):
    """Account document shared by students and staff."""

    email: Indexed(EmailStr, unique=True)
    hashed_password: str
    role: UserRole
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Student-specific
    roll_number: Optional[str] = None
    system_number: Optional[str] = None
    year: Optional[str] = None
    class_names: list[str] = Field(default_factory=list)
    is_approved: bool = False
    device_id: Optional[str] = None

    # Staff-specific
    department: Optional[str] = None

    # FCM tokens for push notifications
    fcm_tokens: list[str] = Field(default_factory=list)

    @field_validator("class_names", mode="before")
    @classmethod
    def _normalize_classes(cls, value):
        return normalize_class_names(value)

    def is_member(self, class_name: str) -> bool:
        key = class_key(class_name)
        return any(class_key(c) == key for c in self.class_names)

    @property
    def class_label(self) -> str:
        return ", ".join(self.class_names)

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    role: UserRole
    name: str
    roll_number: Optional[str] = None
    system_number: Optional[str] = None
    year: Optional[str] = None
    class_names: list[str] = Field(default_factory=list)
    department: Optional[str] = None

    @field_validator("class_names", mode="before")
    @classmethod
    def _normalize_classes(cls, value):
        return normalize_class_names(value)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    roll_number: Optional[str] = None
    system_number: Optional[str] = None
    year: Optional[str] = None
    class_names: Optional[list[str]] = None
    department: Optional[str] = None

    @field_validator("class_names", mode="before")
    @classmethod
    def _normalize_classes(cls, value):
        if value is None:
            return None
        return normalize_class_names(value)


class UserOut(BaseModel):
    id: str
    email: str
    role: UserRole
    name: str
    roll_number: Optional[str] = None
    system_number: Optional[str] = None
    year: Optional[str] = None
    class_names: list[str] = []
    is_approved: bool
    department: Optional[str] = None
    has_device: bool = False

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=str(user.id),
            email=user.email,
            role=user.role,
            name=user.name,
            roll_number=user.roll_number,
            system_number=user.system_number,
            year=user.year,
            class_names=user.class_names,
            is_approved=user.is_approved,
            department=user.department,
            has_device=bool(user.device_id),
        )
