import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    Uuid,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow


class Rfq(Base):
    __tablename__ = "rfqs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    buyer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id")
    )
    is_guest: Mapped[bool] = mapped_column(Boolean, default=False)
    guest_name: Mapped[Optional[str]] = mapped_column(String(200))
    guest_company_name: Mapped[Optional[str]] = mapped_column(String(200))
    guest_phone: Mapped[Optional[str]] = mapped_column(String(30))
    guest_email: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), default="pending")
    is_broker: Mapped[bool] = mapped_column(Boolean, default=False)
    expected_delivery_time: Mapped[str] = mapped_column(String(100), nullable=False)

    approval_status: Mapped[Optional[str]] = mapped_column(String(20))
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    estimated_value_cents: Mapped[Optional[int]] = mapped_column(BigInteger)
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id")
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','quoted','completed')", name="chk_rfq_status"
        ),
        CheckConstraint(
            "approval_status IS NULL OR approval_status IN "
            "('draft','pending_approval','approved','rejected')",
            name="chk_rfq_approval_status",
        ),
        CheckConstraint(
            "(buyer_id IS NOT NULL AND is_guest = false) OR "
            "(buyer_id IS NULL AND is_guest = true)",
            name="chk_rfq_identity",
        ),
        Index("idx_rfqs_buyer", "buyer_id"),
        Index("idx_rfqs_status", "status"),
    )


class RfqItem(Base):
    __tablename__ = "rfq_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_rfq_item_qty"),
        Index("idx_rfq_items_rfq", "rfq_id"),
    )


class SentQuotation(Base):
    """Snapshot of a price-list entry delivered to a buyer for one RFQ item."""

    __tablename__ = "sent_quotations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False
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
    # Plain reference: the price-list entry may be deleted after sending.
    quotation_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    quotation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_terms: Mapped[str] = mapped_column(String(10), nullable=False)
    delivery_time: Mapped[str] = mapped_column(String(100), nullable=False)
    warranty_period: Mapped[str] = mapped_column(String(100), nullable=False)
    country_of_origin: Mapped[Optional[str]] = mapped_column(String(100))
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    product_specifications: Mapped[Optional[str]] = mapped_column(Text)
    product_photo: Mapped[Optional[str]] = mapped_column(Text)
    product_description: Mapped[Optional[str]] = mapped_column(Text)
    opened: Mapped[bool] = mapped_column(Boolean, default=False)
    chosen: Mapped[bool] = mapped_column(Boolean, default=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("price_cents > 0", name="chk_sq_price_positive"),
        Index("idx_sq_rfq", "rfq_id"),
        Index("idx_sq_buyer", "buyer_id"),
        Index("idx_sq_vendor", "vendor_id"),
        Index("idx_sq_product", "product_id"),
    )
