"""In-app notification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query
from sqlalchemy import func, select, update

from dpofast.api.deps import CurrentUser, DbSession
from dpofast.core.errors import ErrorCode, NotFoundError
from dpofast.db.models.notification import Notification
from dpofast.schemas.billing import MarkAllReadOut, NotificationOut, UnreadCountOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut], summary="Recent notifications")
async def list_notifications(
    current_user: CurrentUser,
    db: DbSession,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=50),
) -> list[NotificationOut]:
    query = select(Notification).where(Notification.user_id == current_user.id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return [NotificationOut.model_validate(n) for n in result.scalars().all()]


@router.get("/unread-count", response_model=UnreadCountOut, summary="Unread notification count")
async def unread_count(current_user: CurrentUser, db: DbSession) -> UnreadCountOut:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
    )
    return UnreadCountOut(unread=result.scalar_one())


@router.patch("/{notification_id}/read", response_model=NotificationOut, summary="Mark as read")
async def mark_read(
    notification_id: str, current_user: CurrentUser, db: DbSession
) -> NotificationOut:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != current_user.id:
        raise NotFoundError(
            "Notification", notification_id, code=ErrorCode.NOTIFICATION_NOT_FOUND
        )
    notification.is_read = True
    await db.commit()
    return NotificationOut.model_validate(notification)


@router.post("/read-all", response_model=MarkAllReadOut, summary="Mark every notification read")
async def mark_all_read(current_user: CurrentUser, db: DbSession) -> MarkAllReadOut:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return MarkAllReadOut(updated=result.rowcount or 0)
