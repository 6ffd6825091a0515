"""
Notification service: in-app notification rows plus outbound transport.

In-app rows are written inside the caller's transaction, so they commit or
roll back with the state change that produced them. WhatsApp and email are
resolved DURING the request (while the DB session is open) and dispatched
via BackgroundTasks (fire-and-forget); transport failures never reach the
caller.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.config import settings
from medquote.errors import not_found
from medquote.models.notification import Notification, NOTIFICATION_TYPES, RELATED_KINDS
from medquote.models.user import User
from medquote.services.email_service import send_email
from medquote.services.whatsapp_service import send_whatsapp_message, format_amount

logger = structlog.get_logger()


@dataclass(frozen=True)
class Related:
    """Typed pointer from a notification to the entity it is about."""

    kind: str
    id: uuid.UUID

    def __post_init__(self):
        if self.kind not in RELATED_KINDS:
            raise ValueError(f"Unknown related kind: {self.kind}")


def related_rfq(rfq_id: uuid.UUID) -> Related:
    return Related("rfq", rfq_id)


def related_order(order_id: uuid.UUID) -> Related:
    return Related("order", order_id)


def related_sent_quotation(sent_quotation_id: uuid.UUID) -> Related:
    return Related("sent_quotation", sent_quotation_id)


def related_approval_request(request_id: uuid.UUID) -> Related:
    return Related("approval_request", request_id)


def related_group_buy(group_buy_id: uuid.UUID) -> Related:
    return Related("group_buy", group_buy_id)


# ---------- In-app ----------


async def notify(
    session: AsyncSession,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: str,
    related: Optional[Related] = None,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        related_kind=related.kind if related else None,
        related_id=related.id if related else None,
    )
    session.add(notification)
    return notification


async def list_notifications(
    session: AsyncSession, user: User, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        q = q.where(Notification.read == False)  # noqa: E712
    q = q.order_by(Notification.created_at.desc()).limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_unread_count(session: AsyncSession, user: User) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id,
            Notification.read == False,  # noqa: E712
        )
    )
    return result.scalar() or 0


async def mark_as_read(
    session: AsyncSession, notification_id: uuid.UUID, user: User
) -> Notification:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise not_found("Notification not found")
    notification.read = True
    await session.flush()
    return notification


async def mark_all_as_read(session: AsyncSession, user: User) -> int:
    result = await session.execute(
        update(Notification)
        .where(
            Notification.user_id == user.id,
            Notification.read == False,  # noqa: E712
        )
        .values(read=True)
    )
    return result.rowcount or 0


async def send_admin_contact_message(
    session: AsyncSession, name: str, email: str, phone: str, product_request: str
) -> int:
    """Forward a visitor's product request to every admin. Returns admin count."""
    result = await session.execute(select(User.id).where(User.role == "admin"))
    admin_ids = [row[0] for row in result.all()]
    for admin_id in admin_ids:
        await notify(
            session,
            admin_id,
            "rfq_received",
            "Product Request from Chatbot",
            f"{name} ({email}, {phone}) is looking for: {product_request}",
        )
    logger.info("admin_contact_message_sent", admins=len(admin_ids))
    return len(admin_ids)


# ---------- Transport ----------


def queue_direct_message(
    background_tasks: Optional[BackgroundTasks], user: Optional[User], text: str
) -> bool:
    """Schedule a WhatsApp message if the user opted in and has a phone number."""
    if user is None or not user.whatsapp_notifications or not user.phone:
        return False
    if background_tasks is None:
        logger.debug("whatsapp_not_queued_no_background", user_id=str(user.id))
        return False
    background_tasks.add_task(send_whatsapp_message, user.phone, text)
    return True


TEMPLATES = {
    "guest_quotation_received": {
        "subject": "[{app_name}] New quotation for {product_name}",
        "html": (
            "<h2>You have a new quotation</h2>"
            "<p>Hello {guest_name},</p>"
            "<p>A verified vendor has quoted on your request for "
            "<strong>{product_name}</strong>.</p>"
            "<p><strong>Price:</strong> {currency} {amount_display} "
            "per unit, quantity {quantity}</p>"
            "<p><strong>Delivery:</strong> {delivery_time} &middot; "
            "<strong>Warranty:</strong> {warranty_period} &middot; "
            "<strong>Payment:</strong> {payment_terms}</p>"
            "<p>Register at <a href='{base_url}'>{base_url}</a> to compare "
            "quotations side by side and contact vendors directly.</p>"
        ),
    },
    "account_approved": {
        "subject": "[{app_name}] Your account has been approved",
        "html": (
            "<h2>Welcome to {app_name}</h2>"
            "<p>Hello {name}, your {role} account has been approved.</p>"
            "<p>Log in at <a href='{base_url}'>{base_url}</a> to get started.</p>"
        ),
    },
}


def queue_email(
    background_tasks: Optional[BackgroundTasks],
    template_id: str,
    recipient_emails: list[str],
    context: dict,
) -> bool:
    """Render template and schedule the email. Returns False if nothing was queued."""
    template = TEMPLATES.get(template_id)
    if not template:
        logger.warning("notification_template_not_found", template_id=template_id)
        return False

    emails = [e for e in recipient_emails if e]
    if not emails:
        logger.warning("notification_no_recipients", template_id=template_id)
        return False

    context = {
        "app_name": settings.APP_NAME,
        "base_url": settings.PUBLIC_BASE_URL,
        "currency": settings.CURRENCY,
        **context,
    }
    if "amount_cents" in context and "amount_display" not in context:
        context["amount_display"] = format_amount(context["amount_cents"])

    try:
        subject = template["subject"].format(**context)
        html = template["html"].format(**context)
    except KeyError as e:
        logger.error(
            "notification_template_render_error",
            template_id=template_id,
            missing_key=str(e),
        )
        return False

    if background_tasks is None:
        logger.debug("email_not_queued_no_background", template_id=template_id)
        return False
    background_tasks.add_task(send_email, emails, subject, html)
    logger.info("email_queued", template_id=template_id, recipients=emails)
    return True
