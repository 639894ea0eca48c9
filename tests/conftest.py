"""Shared fixtures: in-memory Mongo, roster builders and an event recorder."""
import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("FIREBASE_CREDENTIALS_PATH", "")

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from eduportal.db import DOCUMENT_MODELS
from eduportal.models.school_class import SchoolClass
from eduportal.models.user import User, UserRole, class_key
from eduportal.services.events import EventDispatcher


class RecordingDispatcher(EventDispatcher):
    """Keeps published events instead of delivering them."""

    def __init__(self):
        super().__init__()
        self.events = []

    async def publish(self, event):
        self.events.append(event)


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["eduportal_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def make_student(db):
    counter = {"n": 0}

    async def _make(name=None, classes="CSE-A", approved=True, roll_number=None, **extra):
        counter["n"] += 1
        n = counter["n"]
        student = User(
            email=f"student{n}@example.com",
            hashed_password="x",
            role=UserRole.STUDENT,
            name=name or f"Student {n}",
            roll_number=roll_number or f"R{n:03d}",
            class_names=classes,
            is_approved=approved,
            **extra,
        )
        await student.insert()
        return student

    return _make


@pytest.fixture
def make_staff(db):
    counter = {"n": 0}

    async def _make(name=None):
        counter["n"] += 1
        n = counter["n"]
        staff = User(
            email=f"staff{n}@example.com",
            hashed_password="x",
            role=UserRole.STAFF,
            name=name or f"Staff {n}",
            is_approved=True,
        )
        await staff.insert()
        return staff

    return _make


@pytest.fixture
def make_class(db):
    async def _make(name, created_by="staff"):
        school_class = SchoolClass(class_name=name, name_key=class_key(name), created_by=created_by)
        await school_class.insert()
        return school_class

    return _make
