import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.common import SuccessResponse
from medquote.schemas.notification import (
    ContactAdminRequest,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
    notification_response,
)
from medquote.services import notification_service

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Fetch recent notifications for the logged-in user, newest first."""
    rows = await notification_service.list_notifications(
        db, current_user, unread_only=unread_only, limit=limit
    )
    return NotificationListResponse(
        data=[notification_response(n) for n in rows],
        unread_count=await notification_service.get_unread_count(db, current_user),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCountResponse(count=await notification_service.get_unread_count(db, current_user))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.mark_as_read(db, notification_id, current_user)
    return notification_response(notification)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return MarkAllReadResponse(updated=await notification_service.mark_all_as_read(db, current_user))


@router.post("/contact-admin", response_model=SuccessResponse)
async def contact_admin(body: ContactAdminRequest, db: AsyncSession = Depends(get_db)):
    """Visitor product request, forwarded to every admin as an in-app notification."""
    await notification_service.send_admin_contact_message(
        db, body.name, body.email, body.phone, body.product_request
    )
    return SuccessResponse()
