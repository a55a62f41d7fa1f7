"""In-app notification delivery."""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.db.models.notification import Notification, NotificationType

_log = structlog.get_logger(__name__)


async def notify(
    db: AsyncSession,
    user_id: str,
    title: str,
    message: str,
    type_: NotificationType,
    related_task_id: str | None = None,
) -> Notification:
    """Queue a notification for ``user_id`` in the current transaction."""
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type_,
        related_task_id=related_task_id,
        is_read=False,
    )
    db.add(notification)
    await db.flush()
    _log.info("notification_created", user_id=user_id, type=type_.value)
    return notification
