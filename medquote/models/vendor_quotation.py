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


class VendorQuotation(Base):
    """A vendor's standing offer for one product (a price-list entry)."""

    __tablename__ = "vendor_quotations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    rfq_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("rfqs.id")
    )
    quotation_type: Mapped[str] = mapped_column(String(20), default="pre-filled")
    source: Mapped[str] = mapped_column(String(20), default="manual")
    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_terms: Mapped[str] = mapped_column(String(10), nullable=False)
    delivery_time: Mapped[str] = mapped_column(String(100), nullable=False)
    warranty_period: Mapped[str] = mapped_column(String(100), nullable=False)
    country_of_origin: Mapped[Optional[str]] = mapped_column(String(100))
    product_specifications: Mapped[Optional[str]] = mapped_column(Text)
    product_photo: Mapped[Optional[str]] = mapped_column(Text)
    product_description: Mapped[Optional[str]] = mapped_column(Text)
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("price_cents > 0", name="chk_vq_price_positive"),
        CheckConstraint("quantity > 0", name="chk_vq_qty_positive"),
        CheckConstraint(
            "payment_terms IN ('cash','credit')", name="chk_vq_payment_terms"
        ),
        CheckConstraint(
            "quotation_type IN ('pre-filled','on-demand')", name="chk_vq_type"
        ),
        Index("idx_vq_vendor", "vendor_id"),
        Index("idx_vq_product", "product_id"),
        Index("idx_vq_vendor_product", "vendor_id", "product_id"),
        Index("idx_vq_rfq", "rfq_id"),
    )
