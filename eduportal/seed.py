"""Seed the first staff account if configured and not present."""
import logging

from eduportal.api.deps import get_password_hash
from eduportal.config import settings
from eduportal.models.user import User, UserRole

logger = logging.getLogger(__name__)


async def seed_staff():
    if not settings.seed_staff_email or not settings.seed_staff_password:
        return
    existing = await User.find_one(User.email == settings.seed_staff_email)
    if existing:
        return
    await User(
        email=settings.seed_staff_email,
        hashed_password=get_password_hash(settings.seed_staff_password),
        role=UserRole.STAFF,
        name=settings.seed_staff_name,
        is_approved=True,
    ).insert()
    logger.info("Seeded staff account %s", settings.seed_staff_email)
