import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
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


class GroupBuy(Base):
    __tablename__ = "group_buys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    target_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_quantity: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="open")
    deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    minimum_participants: Mapped[int] = mapped_column(Integer, default=2)
    rfq_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("rfqs.id")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('open','closed','cancelled')", name="chk_group_buy_status"
        ),
        CheckConstraint("target_quantity > 0", name="chk_group_buy_target"),
        Index("idx_group_buys_status", "status"),
    )


class GroupBuyParticipant(Base):
    __tablename__ = "group_buy_participants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    group_buy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("group_buys.id", ondelete="CASCADE"), nullable=False
    )
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    rfq_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("rfqs.id")
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active")
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active','withdrawn','completed')",
            name="chk_gb_participant_status",
        ),
        CheckConstraint("quantity > 0", name="chk_gb_participant_qty"),
        Index("idx_gb_participants_group", "group_buy_id"),
        Index("idx_gb_participants_hospital", "hospital_id"),
    )
