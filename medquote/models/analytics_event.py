import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, JSON, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column

from medquote.database import Base, utcnow


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    event_metadata: Mapped[Optional[dict]] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_analytics_events_type_ts", "type", "timestamp"),
    )
