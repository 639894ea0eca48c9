"""In-app notifications for the signed-in user."""
from fastapi import APIRouter, Query

from eduportal.api.deps import CurrentUser
from eduportal.models.notification import Notification
from eduportal.services import notifications

router = APIRouter()


def serialize_notification(notification: Notification, silent: bool = False) -> dict:
    return {
        "id": str(notification.id),
        "title": notification.title,
        "message": notification.message,
        "type": notification.kind.value,
        "is_read": notification.is_read,
        "metadata": notification.metadata,
        "created_at": notification.created_at.isoformat(),
        "silent": silent,
    }


@router.get("/")
async def list_notifications(
    user: CurrentUser,
    viewing_session_id: list[str] | None = Query(None),
):
    """`viewing_session_id` names sessions open on the caller's screen; their alerts come back silent."""
    items = await notifications.list_notifications(str(user.id))
    return [
        serialize_notification(n, silent=not notifications.should_alert(n, viewing_session_id or []))
        for n in items
    ]


@router.get("/unread-count")
async def unread_count(user: CurrentUser):
    return {"count": await notifications.unread_count(str(user.id))}


@router.post("/read-all")
async def mark_all_read(user: CurrentUser):
    await notifications.mark_all_as_read(str(user.id))
    return {"status": "ok"}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user: CurrentUser):
    notification = await notifications.mark_as_read(notification_id, str(user.id))
    return serialize_notification(notification)
