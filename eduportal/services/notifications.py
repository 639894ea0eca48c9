"""In-app notification store, fan-out and viewer suppression."""
from __future__ import annotations

import logging
from typing import Any, Iterable

from eduportal.exceptions import NotFoundError
from eduportal.models.notification import Notification, NotificationKind
from eduportal.models.user import User
from eduportal.services import fcm
from eduportal.services.roster import safe_object_id

logger = logging.getLogger(__name__)


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            result.append(v)
    return result


async def _push_tokens_for(user_ids: list[str]) -> list[str]:
    object_ids = [oid for oid in (safe_object_id(u) for u in user_ids) if oid]
    if not object_ids:
        return []
    users = await User.find({"_id": {"$in": object_ids}}).to_list()
    tokens: list[str] = []
    for user in users:
        tokens.extend(user.fcm_tokens)
    return _unique(tokens)


async def notify(
    user_ids: Iterable[str],
    title: str,
    body: str,
    kind: NotificationKind,
    metadata: dict[str, Any] | None = None,
) -> int:
    """Store one in-app notification per recipient and mirror it as a push.

    Returns the number of in-app rows written.
    """
    recipients = _unique(user_ids)
    if not recipients:
        return 0
    metadata = metadata or {}
    await Notification.insert_many(
        [
            Notification(user_id=uid, title=title, message=body, kind=kind, metadata=metadata)
            for uid in recipients
        ]
    )
    tokens = await _push_tokens_for(recipients)
    await fcm.send_push(tokens, title, body, {"type": kind.value, **metadata})
    logger.info("Notified %d users (%s)", len(recipients), kind.value)
    return len(recipients)


def should_alert(notification: Notification, viewing_session_ids: Iterable[str] = ()) -> bool:
    """False when the notification is about a session the caller is looking at right now."""
    session_id = (notification.metadata or {}).get("session_id")
    if not session_id:
        return True
    return str(session_id) not in set(viewing_session_ids)


async def list_notifications(user_id: str) -> list[Notification]:
    return await Notification.find(Notification.user_id == user_id).sort("-created_at").to_list()


async def unread_count(user_id: str) -> int:
    return await Notification.find({"user_id": user_id, "is_read": False}).count()


async def mark_as_read(notification_id: str, user_id: str) -> Notification:
    oid = safe_object_id(notification_id)
    notification = await Notification.get(oid) if oid else None
    if not notification or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        await notification.save()
    return notification


async def mark_all_as_read(user_id: str) -> None:
    await Notification.find({"user_id": user_id, "is_read": False}).update({"$set": {"is_read": True}})
