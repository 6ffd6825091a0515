"""
Unit tests for medquote/services/rating_service.py

Tests: compute_trust_score (weight renormalisation), can_rate_vendor reasons,
       submit_rating (range checks, duplicates, vendor reputation refresh),
       compute_stats.
"""

import uuid

import pytest

from medquote.errors import BAD_REQUEST, CONFLICT, FORBIDDEN, ServiceError
from medquote.models.rating import Rating
from medquote.services import rating_service


async def _completed_deal(make, order_status="ordered"):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category)
    rfq = await make.rfq(buyer, (product, 4), status="completed")
    sq = await make.sent_quotation(rfq, vendor, product, price_cents=12_500, quantity=4, chosen=True)
    order = await make.order(sq, status=order_status)
    return buyer, vendor, rfq, order


# ---------------------------------------------------------------------------
# Trust score
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "average, recommendation, delivery, expected",
    [
        (None, 100.0, 100.0, None),
        (4.0, None, None, 80.0),
        (5.0, 100.0, 50.0, 90.0),
        (4.0, 100.0, None, 87.5),
        (3.0, None, 100.0, 71.4),
    ],
)
def test_trust_score_renormalises_over_available_signals(
    average, recommendation, delivery, expected
):
    assert rating_service.compute_trust_score(average, recommendation, delivery) == expected


def test_stats_distribution_and_recommendation_rate():
    vendor_id = uuid.uuid4()
    ratings = [
        Rating(rating=5, would_recommend=True, quality_rating=5),
        Rating(rating=4, would_recommend=False, quality_rating=3),
        Rating(rating=5, would_recommend=None),
    ]

    stats = rating_service.compute_stats(vendor_id, ratings, delivery_rate=None)

    assert stats.total_ratings == 3
    assert stats.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 1, 5: 2}
    assert stats.recommendation_rate == 50.0
    assert stats.average_quality == 4.0
    assert stats.average_delivery is None


def test_stats_without_ratings_have_no_trust_score():
    stats = rating_service.compute_stats(uuid.uuid4(), [], delivery_rate=100.0)

    assert stats.total_ratings == 0
    assert stats.average_rating == 0.0
    assert stats.trust_score is None


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_buyer_with_chosen_quotation_can_rate(session, make):
    buyer, vendor, rfq, _order = await _completed_deal(make)

    eligibility = await rating_service.can_rate_vendor(session, vendor.id, rfq.id, buyer)

    assert eligibility.can_rate is True
    assert eligibility.reason is None


@pytest.mark.asyncio
async def test_eligibility_reasons(session, make):
    buyer, vendor, rfq, _order = await _completed_deal(make)
    stranger = await make.user("buyer")
    loser = await make.user("vendor")

    not_owner = await rating_service.can_rate_vendor(session, vendor.id, rfq.id, stranger)
    not_chosen = await rating_service.can_rate_vendor(session, loser.id, rfq.id, buyer)
    await rating_service.submit_rating(session, buyer, vendor.id, rfq.id, rating=4)
    already = await rating_service.can_rate_vendor(session, vendor.id, rfq.id, buyer)

    assert (not_owner.can_rate, not_owner.reason) == (False, "Not your RFQ")
    assert (not_chosen.can_rate, not_chosen.reason) == (
        False,
        "No accepted quotation from this vendor",
    )
    assert (already.can_rate, already.reason) == (False, "Already rated")


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rating_refreshes_vendor_reputation(session, make):
    buyer, vendor, rfq, order = await _completed_deal(make)

    rating = await rating_service.submit_rating(
        session,
        buyer,
        vendor.id,
        rfq.id,
        rating=5,
        delivery_rating=4,
        would_recommend=True,
        review="Fast and professional",
    )

    assert rating.order_value_cents == order.total_amount_cents
    assert vendor.total_ratings == 1
    assert vendor.average_rating == 5.0
    # rating 100, recommendation 100, delivery 0 (order not yet delivered)
    assert vendor.trust_score == 80.0


@pytest.mark.asyncio
async def test_delivered_orders_lift_trust_score(session, make):
    buyer, vendor, rfq, _order = await _completed_deal(make, order_status="delivered")

    await rating_service.submit_rating(session, buyer, vendor.id, rfq.id, rating=4)

    # (0.5 * 80 + 0.2 * 100) / 0.7
    assert vendor.trust_score == 85.7


@pytest.mark.asyncio
async def test_duplicate_rating_conflicts(session, make):
    buyer, vendor, rfq, _order = await _completed_deal(make)
    await rating_service.submit_rating(session, buyer, vendor.id, rfq.id, rating=4)

    with pytest.raises(ServiceError) as exc_info:
        await rating_service.submit_rating(session, buyer, vendor.id, rfq.id, rating=5)

    assert exc_info.value.code == CONFLICT
    assert vendor.total_ratings == 1


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"rating": 0}, "Rating must be between 1 and 5"),
        ({"rating": 6}, "Rating must be between 1 and 5"),
        ({"rating": 4, "quality_rating": 9}, "Quality rating must be between 1 and 5"),
        ({"rating": 4, "delivery_rating": 0}, "Delivery rating must be between 1 and 5"),
    ],
)
@pytest.mark.asyncio
async def test_out_of_range_scores_are_bad_requests(session, make, kwargs, message):
    buyer, vendor, rfq, _order = await _completed_deal(make)

    with pytest.raises(ServiceError) as exc_info:
        await rating_service.submit_rating(session, buyer, vendor.id, rfq.id, **kwargs)

    assert exc_info.value.code == BAD_REQUEST
    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_rating_vendor_without_chosen_quotation_is_forbidden(session, make):
    buyer, _vendor, rfq, _order = await _completed_deal(make)
    other_vendor = await make.user("vendor")

    with pytest.raises(ServiceError) as exc_info:
        await rating_service.submit_rating(session, buyer, other_vendor.id, rfq.id, rating=3)

    assert exc_info.value.code == FORBIDDEN
    assert exc_info.value.message == "No accepted quotation from this vendor"


@pytest.mark.asyncio
async def test_vendors_cannot_rate(session, make):
    _buyer, vendor, rfq, _order = await _completed_deal(make)

    with pytest.raises(ServiceError) as exc_info:
        await rating_service.submit_rating(session, vendor, vendor.id, rfq.id, rating=5)

    assert exc_info.value.code == FORBIDDEN
