import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    Uuid,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow


class Rating(Base):
    __tablename__ = "ratings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rfqs.id"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    delivery_rating: Mapped[Optional[int]] = mapped_column(Integer)
    communication_rating: Mapped[Optional[int]] = mapped_column(Integer)
    quality_rating: Mapped[Optional[int]] = mapped_column(Integer)
    would_recommend: Mapped[Optional[bool]] = mapped_column(Boolean)
    review: Mapped[Optional[str]] = mapped_column(Text)
    order_value_cents: Mapped[Optional[int]] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("buyer_id", "vendor_id", "rfq_id", name="uq_rating_triple"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="chk_rating_range"),
        Index("idx_ratings_vendor", "vendor_id"),
        Index("idx_ratings_buyer", "buyer_id"),
    )
