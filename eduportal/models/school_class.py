from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class SchoolClass(Document):
    """Class / section (e.g. "CSE-A"), referenced by name from student profiles and sessions."""

    class_name: str
    name_key: Indexed(str, unique=True)  # casefolded class_name
    description: Optional[str] = None
    year: Optional[str] = None
    created_by: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "classes"
        use_state_management = True


class SchoolClassCreate(BaseModel):
    class_name: str
    description: Optional[str] = None
    year: Optional[str] = None


class SchoolClassUpdate(BaseModel):
    class_name: Optional[str] = None
    description: Optional[str] = None
    year: Optional[str] = None
    is_active: Optional[bool] = None
