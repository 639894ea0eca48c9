"""Firebase Cloud Messaging: push delivery for in-app notifications."""
import asyncio
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, messaging

from eduportal.config import settings

logger = logging.getLogger(__name__)

_firebase_app = None


def _get_firebase_app():
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    if not settings.firebase_credentials_path:
        logger.warning("FIREBASE_CREDENTIALS_PATH not set. FCM will be disabled.")
        return None

    try:
        cred = credentials.Certificate(settings.firebase_credentials_path)
        _firebase_app = firebase_admin.initialize_app(cred)
        return _firebase_app
    except Exception as e:
        logger.error(f"Failed to initialize Firebase app: {e}")
        return None


def _stringify(data: Optional[dict]) -> dict[str, str]:
    # FCM data payload values must be strings
    return {str(k): str(v) for k, v in (data or {}).items() if v is not None}


async def send_push(tokens: list[str], title: str, body: str, data: Optional[dict] = None) -> int:
    """Send one notification to many devices; returns the number delivered."""
    if not tokens:
        return 0
    app = _get_firebase_app()
    if not app:
        return 0

    delivered = 0
    batch_size = settings.fcm_batch_size
    for i in range(0, len(tokens), batch_size):
        batch = tokens[i:i + batch_size]
        message = messaging.MulticastMessage(
            notification=messaging.Notification(
                title=title,
                body=body[:100] + "..." if len(body) > 100 else body,
            ),
            data=_stringify(data),
            tokens=batch,
        )
        try:
            response = await asyncio.to_thread(messaging.send_each_for_multicast, message)
            delivered += response.success_count
            logger.info(f"Sent push to {response.success_count} devices. Errors: {response.failure_count}")
        except Exception as e:
            logger.error(f"FCM batch send failed: {e}")
    return delivered
