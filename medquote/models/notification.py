import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow

NOTIFICATION_TYPES = (
    "quotation_sent",
    "rfq_received",
    "vendor_approved",
    "buyer_approved",
    "rfq_needs_quotation",
    "quotation_chosen",
    "quotation_declined",
    "approval_request",
    "approval_update",
    "order_update",
    "group_buy",
)

# What related_id points at.
RELATED_KINDS = ("rfq", "order", "sent_quotation", "approval_request", "group_buy")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    related_kind: Mapped[Optional[str]] = mapped_column(String(30))
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "read"),
    )
