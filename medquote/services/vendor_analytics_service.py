"""
Vendor performance metrics.

  win_rate        won SentQuotations / all SentQuotations × 100, 0 with none sent
  delivery_rate   delivered orders / all orders × 100
  response time   hours from RFQ creation to the SentQuotation reaching the buyer
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import utcnow
from medquote.models.order import Order
from medquote.models.rating import Rating
from medquote.models.rfq import Rfq, SentQuotation
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.schemas.analytics import (
    MarketComparison,
    MonthlyRevenue,
    RecentPerformance,
    VendorDashboardStats,
    VendorPerformance,
)
from medquote.services.guards import check_role

logger = structlog.get_logger()

REVENUE_TREND_DAYS = 180
RECENT_DAYS = 30


@dataclass
class SentRow:
    price_cents: int
    quantity: int
    chosen: bool
    opened: bool
    sent_at: datetime
    rfq_created_at: datetime

    @property
    def value_cents(self) -> int:
        return self.price_cents * self.quantity

    @property
    def response_hours(self) -> float:
        return (self.sent_at - self.rfq_created_at).total_seconds() / 3600


def win_rate(sent: int, won: int) -> float:
    return won / sent * 100 if sent > 0 else 0.0


def mean_or_zero(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


async def sent_rows(session: AsyncSession, vendor_id) -> list[SentRow]:
    """Vendor's SentQuotations in send order, with their RFQ's creation time."""
    result = await session.execute(
        select(
            SentQuotation.price_cents,
            SentQuotation.quantity,
            SentQuotation.chosen,
            SentQuotation.opened,
            SentQuotation.sent_at,
            Rfq.created_at,
        )
        .join(Rfq, Rfq.id == SentQuotation.rfq_id)
        .where(SentQuotation.vendor_id == vendor_id)
        .order_by(SentQuotation.sent_at, SentQuotation.id)
    )
    return [SentRow(*row) for row in result.all()]


async def vendor_rating_values(session: AsyncSession, vendor_id) -> list[Rating]:
    result = await session.execute(select(Rating).where(Rating.vendor_id == vendor_id))
    return list(result.scalars().all())


async def get_vendor_performance(session: AsyncSession, vendor: User) -> VendorPerformance:
    check_role(vendor, "vendor", message="Not a vendor")
    sent = await sent_rows(session, vendor.id)
    won = [s for s in sent if s.chosen]

    orders_result = await session.execute(select(Order.status).where(Order.vendor_id == vendor.id))
    order_statuses = [row[0] for row in orders_result.all()]
    delivered = sum(1 for s in order_statuses if s == "delivered")

    ratings = await vendor_rating_values(session, vendor.id)
    n_ratings = len(ratings)

    # Sub-ratings averaged over all ratings, unset counting as zero
    def sub_average(field: str) -> float:
        if not ratings:
            return 0.0
        return sum(getattr(r, field) or 0 for r in ratings) / n_ratings

    since = utcnow() - timedelta(days=REVENUE_TREND_DAYS)
    monthly: dict[str, int] = defaultdict(int)
    for s in won:
        if s.sent_at >= since:
            monthly[s.sent_at.strftime("%Y-%m")] += s.value_cents

    return VendorPerformance(
        total_quotations=len(sent),
        total_won_quotations=len(won),
        win_rate=win_rate(len(sent), len(won)),
        total_revenue_cents=sum(s.value_cents for s in won),
        total_orders=len(order_statuses),
        delivered_orders=delivered,
        delivery_rate=delivered / len(order_statuses) * 100 if order_statuses else 0.0,
        total_ratings=n_ratings,
        average_rating=mean_or_zero([r.rating for r in ratings]),
        average_delivery_rating=sub_average("delivery_rating"),
        average_communication_rating=sub_average("communication_rating"),
        average_quality_rating=sub_average("quality_rating"),
        average_response_time_hours=mean_or_zero([s.response_hours for s in sent]),
        revenue_by_month=[
            MonthlyRevenue(month=month, revenue_cents=revenue)
            for month, revenue in sorted(monthly.items())
        ],
    )


async def get_market_comparison(session: AsyncSession, vendor: User) -> MarketComparison:
    """The vendor against the mean of every vendor with at least one quotation sent."""
    check_role(vendor, "vendor", message="Not a vendor")

    sent_result = await session.execute(select(SentQuotation.vendor_id, SentQuotation.chosen))
    sent_by_vendor: dict = defaultdict(lambda: [0, 0])
    for vendor_id, chosen in sent_result.all():
        sent_by_vendor[vendor_id][0] += 1
        if chosen:
            sent_by_vendor[vendor_id][1] += 1

    ratings_result = await session.execute(select(Rating.vendor_id, Rating.rating))
    ratings_by_vendor: dict = defaultdict(list)
    for vendor_id, rating in ratings_result.all():
        ratings_by_vendor[vendor_id].append(rating)

    vendors_result = await session.execute(select(User.id).where(User.role == "vendor"))
    active = [row[0] for row in vendors_result.all() if sent_by_vendor[row[0]][0] > 0]

    market_win = mean_or_zero([win_rate(*sent_by_vendor[v]) for v in active])
    market_rating = mean_or_zero([mean_or_zero(ratings_by_vendor[v]) for v in active])
    mine = sent_by_vendor[vendor.id]

    return MarketComparison(
        my_win_rate=win_rate(*mine),
        market_average_win_rate=market_win,
        my_average_rating=mean_or_zero(ratings_by_vendor[vendor.id]),
        market_average_rating=market_rating,
        total_active_vendors=len(active),
    )


async def get_recent_performance(session: AsyncSession, vendor: User) -> RecentPerformance:
    check_role(vendor, "vendor", message="Not a vendor")
    since = utcnow() - timedelta(days=RECENT_DAYS)
    sent = [s for s in await sent_rows(session, vendor.id) if s.sent_at >= since]
    won = [s for s in sent if s.chosen]

    orders_result = await session.execute(
        select(Order.id).where(Order.vendor_id == vendor.id, Order.order_date >= since)
    )
    return RecentPerformance(
        quotations_last_30_days=len(sent),
        won_quotations_last_30_days=len(won),
        orders_last_30_days=len(orders_result.all()),
        revenue_last_30_days_cents=sum(s.value_cents for s in won),
    )


async def get_vendor_stats_summary(session: AsyncSession, vendor: User) -> VendorDashboardStats:
    check_role(vendor, "vendor", message="Not a vendor")
    entries = await session.execute(
        select(VendorQuotation.active).where(VendorQuotation.vendor_id == vendor.id)
    )
    active_flags = [row[0] for row in entries.all()]
    sent = await sent_rows(session, vendor.id)
    ratings = await vendor_rating_values(session, vendor.id)
    return VendorDashboardStats(
        total_quotations=len(active_flags),
        active_quotations=sum(1 for a in active_flags if a),
        quotations_sent=len(sent),
        quotations_opened=sum(1 for s in sent if s.opened),
        average_rating=mean_or_zero([r.rating for r in ratings]),
        total_ratings=len(ratings),
    )
