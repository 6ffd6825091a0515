import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Boolean,
    BigInteger,
    Integer,
    Numeric,
    DateTime,
    Text,
    JSON,
    Uuid,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow

QUOTATION_PREFERENCES = (
    "registered_hospitals_only",
    "registered_all",
    "all_including_guests",
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    auth_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    address: Mapped[Optional[str]] = mapped_column(Text)
    avatar: Mapped[Optional[str]] = mapped_column(Text)

    # Vendor-only
    categories: Mapped[Optional[list]] = mapped_column(JSON)
    quotation_preference: Mapped[str] = mapped_column(
        String(40), default="all_including_guests"
    )
    trust_score: Mapped[Optional[float]] = mapped_column(
        Numeric(5, 1, asdecimal=False)
    )
    average_rating: Mapped[Optional[float]] = mapped_column(
        Numeric(3, 2, asdecimal=False)
    )
    total_ratings: Mapped[int] = mapped_column(Integer, default=0)

    # Approval chain
    organization_role: Mapped[str] = mapped_column(String(40), default="none")
    approval_level: Mapped[Optional[int]] = mapped_column(Integer)
    can_approve_up_to_cents: Mapped[Optional[int]] = mapped_column(BigInteger)

    whatsapp_notifications: Mapped[bool] = mapped_column(Boolean, default=False)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin','vendor','buyer')", name="chk_user_role"
        ),
        CheckConstraint(
            "status IN ('pending','approved','rejected')", name="chk_user_status"
        ),
        Index("idx_users_role", "role"),
        Index("idx_users_email", "email"),
        Index("idx_users_company", "company_name"),
    )

    @property
    def display_name(self) -> str:
        return self.company_name or self.name
