import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    DateTime,
    Text,
    ForeignKey,
    Uuid,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow

ORDER_STATUSES = (
    "ordered",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
)

IN_PROGRESS_STATUSES = ("ordered", "confirmed", "processing", "shipped")


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rfqs.id"), nullable=False
    )
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sent_quotations.id"), unique=True, nullable=False
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="ordered")
    order_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    estimated_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    actual_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivery_notes: Mapped[Optional[str]] = mapped_column(Text)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text)
    proof_of_delivery: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint(
            "status IN ('ordered','confirmed','processing','shipped',"
            "'delivered','cancelled')",
            name="chk_order_status",
        ),
        Index("idx_orders_buyer", "buyer_id"),
        Index("idx_orders_vendor", "vendor_id"),
        Index("idx_orders_rfq", "rfq_id"),
    )
