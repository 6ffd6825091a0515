"""Marketplace-wide counters for the admin dashboard, plus visit tracking."""

from datetime import timedelta
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import utcnow
from medquote.models.analytics_event import AnalyticsEvent
from medquote.models.catalog import Category, Product
from medquote.models.rfq import Rfq, RfqItem, SentQuotation
from medquote.models.user import User
from medquote.schemas.analytics import (
    CategoryStats,
    QuotationStats,
    RfqStats,
    SiteAnalytics,
    UserStats,
    VisitorStats,
)
from medquote.services.guards import check_role

logger = structlog.get_logger()

WINDOW_DAYS = 30


async def track_visit(session: AsyncSession, page: Optional[str] = None) -> AnalyticsEvent:
    event = AnalyticsEvent(type="visitor", event_metadata={"page": page} if page else None)
    session.add(event)
    await session.flush()
    return event


async def _count(session: AsyncSession, column, *conditions) -> int:
    return (await session.execute(select(func.count(column)).where(*conditions))).scalar() or 0


async def get_site_analytics(session: AsyncSession, admin: User) -> SiteAnalytics:
    check_role(admin, "admin", message="Only admins can view analytics")
    since = utcnow() - timedelta(days=WINDOW_DAYS)

    rfq_status = await session.execute(select(Rfq.status, func.count(Rfq.id)).group_by(Rfq.status))
    by_status = {status: count for status, count in rfq_status.all()}

    sent_total = await _count(session, SentQuotation.id)
    opened = await _count(session, SentQuotation.id, SentQuotation.opened == True)  # noqa: E712

    users = await session.execute(
        select(User.role, User.verified, func.count(User.id)).group_by(User.role, User.verified)
    )
    user_counts: dict[tuple[str, bool], int] = {
        (role, bool(verified)): count for role, verified, count in users.all()
    }

    categories = await session.execute(
        select(
            Category.name,
            func.count(func.distinct(Product.id)),
            func.count(RfqItem.id),
        )
        .outerjoin(Product, Product.category_id == Category.id)
        .outerjoin(RfqItem, RfqItem.product_id == Product.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name)
    )

    return SiteAnalytics(
        visitors=VisitorStats(
            total=await _count(session, AnalyticsEvent.id, AnalyticsEvent.type == "visitor"),
            last_30_days=await _count(
                session,
                AnalyticsEvent.id,
                AnalyticsEvent.type == "visitor",
                AnalyticsEvent.timestamp >= since,
            ),
        ),
        rfqs=RfqStats(
            total=sum(by_status.values()),
            last_30_days=await _count(session, Rfq.id, Rfq.created_at >= since),
            pending=by_status.get("pending", 0),
            quoted=by_status.get("quoted", 0),
            completed=by_status.get("completed", 0),
        ),
        quotations=QuotationStats(
            total=sent_total,
            opened=opened,
            open_rate=opened / sent_total * 100 if sent_total > 0 else 0.0,
        ),
        users=UserStats(
            total_vendors=user_counts.get(("vendor", True), 0) + user_counts.get(("vendor", False), 0),
            verified_vendors=user_counts.get(("vendor", True), 0),
            total_buyers=user_counts.get(("buyer", True), 0) + user_counts.get(("buyer", False), 0),
            verified_buyers=user_counts.get(("buyer", True), 0),
        ),
        categories=[
            CategoryStats(category_name=name, product_count=products, rfq_count=items)
            for name, products, items in categories.all()
        ],
    )
