"""
Vendor ratings and trust.

A buyer may rate a vendor once per RFQ, and only after choosing that
vendor's quotation on it. Every accepted rating refreshes the vendor's
cached average_rating, total_ratings and trust_score.

Trust score (0-100) is a weighted average of the signals that have data:
  - rating:          average overall rating scaled to 0-100
  - recommendation:  % of ratings that would recommend
  - delivery:        % of the vendor's orders delivered
Missing signals are dropped and the remaining weights renormalised.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.errors import bad_request, conflict, forbidden, not_found
from medquote.models.order import Order
from medquote.models.rating import Rating
from medquote.models.rfq import SentQuotation
from medquote.models.user import User
from medquote.schemas.rating import (
    RatingResponse,
    VendorRatingsResponse,
    VendorStatsResponse,
    rating_response,
)
from medquote.services.guards import check_role
from medquote.services.rfq_service import get_rfq

logger = structlog.get_logger()

# Must sum to 1.0
_TRUST_WEIGHTS = {
    "rating": 0.5,
    "recommendation": 0.3,
    "delivery": 0.2,
}

SUB_RATINGS = ("delivery_rating", "communication_rating", "quality_rating")

NOT_YOUR_RFQ = "Not your RFQ"
NO_ACCEPTED_QUOTATION = "No accepted quotation from this vendor"
ALREADY_RATED = "Already rated"


@dataclass
class Eligibility:
    can_rate: bool
    reason: Optional[str] = None


def _check_range(name: str, value: Optional[int]):
    if value is not None and not 1 <= value <= 5:
        raise bad_request(f"{name} must be between 1 and 5")


async def can_rate_vendor(
    session: AsyncSession, vendor_id: uuid.UUID, rfq_id: uuid.UUID, buyer: User
) -> Eligibility:
    rfq = await get_rfq(session, rfq_id)
    if rfq.buyer_id != buyer.id:
        return Eligibility(False, NOT_YOUR_RFQ)

    chosen = await session.execute(
        select(SentQuotation.id).where(
            SentQuotation.rfq_id == rfq_id,
            SentQuotation.vendor_id == vendor_id,
            SentQuotation.chosen == True,  # noqa: E712
        )
    )
    if chosen.first() is None:
        return Eligibility(False, NO_ACCEPTED_QUOTATION)

    existing = await session.execute(
        select(Rating.id).where(
            Rating.buyer_id == buyer.id,
            Rating.vendor_id == vendor_id,
            Rating.rfq_id == rfq_id,
        )
    )
    if existing.first() is not None:
        return Eligibility(False, ALREADY_RATED)
    return Eligibility(True)


async def submit_rating(
    session: AsyncSession,
    buyer: User,
    vendor_id: uuid.UUID,
    rfq_id: uuid.UUID,
    rating: int,
    delivery_rating: Optional[int] = None,
    communication_rating: Optional[int] = None,
    quality_rating: Optional[int] = None,
    would_recommend: Optional[bool] = None,
    review: Optional[str] = None,
    order_value_cents: Optional[int] = None,
) -> Rating:
    check_role(buyer, "buyer", message="Only buyers can rate vendors")
    _check_range("Rating", rating)
    _check_range("Delivery rating", delivery_rating)
    _check_range("Communication rating", communication_rating)
    _check_range("Quality rating", quality_rating)

    await get_rfq(session, rfq_id, for_update=True)
    eligibility = await can_rate_vendor(session, vendor_id, rfq_id, buyer)
    if not eligibility.can_rate:
        if eligibility.reason == ALREADY_RATED:
            raise conflict("You have already rated this vendor for this RFQ")
        raise forbidden(eligibility.reason)

    if order_value_cents is None:
        order_total = await session.execute(
            select(Order.total_amount_cents).where(
                Order.rfq_id == rfq_id, Order.vendor_id == vendor_id
            )
        )
        order_value_cents = order_total.scalars().first()

    row = Rating(
        buyer_id=buyer.id,
        vendor_id=vendor_id,
        rfq_id=rfq_id,
        rating=rating,
        delivery_rating=delivery_rating,
        communication_rating=communication_rating,
        quality_rating=quality_rating,
        would_recommend=would_recommend,
        review=review,
        order_value_cents=order_value_cents,
    )
    session.add(row)
    await session.flush()

    await refresh_vendor_reputation(session, vendor_id)
    logger.info(
        "vendor_rated",
        rating_id=str(row.id),
        vendor_id=str(vendor_id),
        rfq_id=str(rfq_id),
        rating=rating,
    )
    return row


# ── Aggregates ──────────────────────────────────────────────


def _mean(values: list) -> Optional[float]:
    return sum(values) / len(values) if values else None


def compute_stats(vendor_id: uuid.UUID, ratings: list[Rating], delivery_rate: Optional[float]) -> VendorStatsResponse:
    overall = [r.rating for r in ratings]
    recommends = [r.would_recommend for r in ratings if r.would_recommend is not None]
    recommendation_rate = (
        sum(1 for r in recommends if r) / len(recommends) * 100 if recommends else None
    )

    distribution = {star: 0 for star in range(1, 6)}
    for value in overall:
        distribution[min(5, max(1, int(round(value))))] += 1

    average = _mean(overall) or 0.0
    return VendorStatsResponse(
        vendor_id=str(vendor_id),
        total_ratings=len(ratings),
        average_rating=average,
        average_delivery=_mean([r.delivery_rating for r in ratings if r.delivery_rating is not None]),
        average_communication=_mean(
            [r.communication_rating for r in ratings if r.communication_rating is not None]
        ),
        average_quality=_mean([r.quality_rating for r in ratings if r.quality_rating is not None]),
        recommendation_rate=recommendation_rate,
        rating_distribution=distribution,
        trust_score=compute_trust_score(
            average if ratings else None, recommendation_rate, delivery_rate
        ),
    )


def compute_trust_score(
    average_rating: Optional[float],
    recommendation_rate: Optional[float],
    delivery_rate: Optional[float],
) -> Optional[float]:
    if average_rating is None:
        return None
    available = {
        "rating": average_rating / 5 * 100,
        "recommendation": recommendation_rate,
        "delivery": delivery_rate,
    }
    available = {k: v for k, v in available.items() if v is not None}
    total_weight = sum(_TRUST_WEIGHTS[k] for k in available)
    weighted_sum = sum(_TRUST_WEIGHTS[k] * v for k, v in available.items())
    return round(weighted_sum / total_weight, 1)


async def _vendor_delivery_rate(session: AsyncSession, vendor_id: uuid.UUID) -> Optional[float]:
    result = await session.execute(select(Order.status).where(Order.vendor_id == vendor_id))
    statuses = [row[0] for row in result.all()]
    if not statuses:
        return None
    return sum(1 for s in statuses if s == "delivered") / len(statuses) * 100


async def _vendor_ratings(session: AsyncSession, vendor_id: uuid.UUID) -> list[Rating]:
    result = await session.execute(
        select(Rating).where(Rating.vendor_id == vendor_id).order_by(Rating.created_at.desc())
    )
    return list(result.scalars().all())


async def get_vendor_stats(session: AsyncSession, vendor_id: uuid.UUID) -> VendorStatsResponse:
    vendor = await session.get(User, vendor_id)
    if not vendor or vendor.role != "vendor":
        raise not_found("Vendor not found")
    ratings = await _vendor_ratings(session, vendor_id)
    return compute_stats(vendor_id, ratings, await _vendor_delivery_rate(session, vendor_id))


async def refresh_vendor_reputation(session: AsyncSession, vendor_id: uuid.UUID) -> User:
    vendor = await session.get(User, vendor_id)
    if not vendor:
        raise not_found("Vendor not found")
    stats = await get_vendor_stats(session, vendor_id)
    vendor.total_ratings = stats.total_ratings
    vendor.average_rating = round(stats.average_rating, 2) if stats.total_ratings else None
    vendor.trust_score = stats.trust_score
    await session.flush()
    return vendor


async def get_vendor_ratings(session: AsyncSession, vendor_id: uuid.UUID) -> VendorRatingsResponse:
    result = await session.execute(
        select(Rating, User)
        .join(User, User.id == Rating.buyer_id)
        .where(Rating.vendor_id == vendor_id)
        .order_by(Rating.created_at.desc())
    )
    rows = result.all()
    values = [r.rating for r, _ in rows]
    return VendorRatingsResponse(
        ratings=[rating_response(r, buyer=b) for r, b in rows],
        average_rating=_mean(values) or 0.0,
        total_ratings=len(values),
    )


async def get_my_ratings(session: AsyncSession, buyer: User) -> list[RatingResponse]:
    if buyer.role != "buyer":
        return []
    result = await session.execute(
        select(Rating, User)
        .join(User, User.id == Rating.vendor_id)
        .where(Rating.buyer_id == buyer.id)
        .order_by(Rating.created_at.desc())
    )
    return [rating_response(r, vendor=v) for r, v in result.all()]
