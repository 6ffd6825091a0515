"""
Unit tests for medquote/services/rfq_service.py

Tests: submit_rfq (price-list matching, solicitation of category vendors,
       broker self-exclusion, validation before any write),
       submit_guest_rfq (no matching, guest-accepting vendors only).
"""

import uuid

import pytest
from sqlalchemy import select, func

from medquote.errors import BAD_REQUEST, FORBIDDEN, NOT_FOUND, ServiceError
from medquote.models.analytics_event import AnalyticsEvent
from medquote.models.rfq import Rfq, SentQuotation
from medquote.services import rfq_service


async def _count(session, model) -> int:
    return (await session.execute(select(func.count(model.id)))).scalar()


async def _sent_quotations(session, rfq_id) -> list[SentQuotation]:
    result = await session.execute(select(SentQuotation).where(SentQuotation.rfq_id == rfq_id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Registered RFQs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_active_price_lists_are_sent_and_other_category_vendors_solicited(session, make):
    category = await make.category()
    product = await make.product(category, "Patient Monitor")
    buyer = await make.user("buyer", company_name="St. Mary's Hospital")

    listed = await make.vendor(category)
    await make.price_list(listed, product, price_cents=125_000, brand="Mindray")
    unlisted = await make.vendor(category)
    unverified = await make.vendor(category, verified=False)
    await make.price_list(unverified, product, price_cents=90_000)

    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 3}], "2 weeks"
    )

    assert result.matched_count == 1
    assert result.vendors_notified == 1
    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.status == "quoted"
    assert rfq.is_broker is False

    sent = await _sent_quotations(session, rfq.id)
    assert len(sent) == 1
    assert sent[0].vendor_id == listed.id
    assert sent[0].price_cents == 125_000
    assert sent[0].brand == "Mindray"
    assert sent[0].opened is False and sent[0].chosen is False

    assert [n.type for n in await make.notifications(listed)] == ["quotation_sent"]
    solicited = await make.notifications(unlisted)
    assert [n.type for n in solicited] == ["rfq_needs_quotation"]
    assert "3 x Patient Monitor" in solicited[0].message
    assert solicited[0].related_kind == "rfq"
    assert await make.notifications(unverified) == []


@pytest.mark.asyncio
async def test_inactive_price_list_vendor_is_solicited_instead(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category)
    await make.price_list(vendor, product, active=False)

    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "ASAP"
    )

    assert result.matched_count == 0
    assert result.vendors_notified == 1
    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.status == "pending"
    assert await _sent_quotations(session, rfq.id) == []


@pytest.mark.asyncio
async def test_vendor_outside_category_is_not_solicited(session, make):
    beds = await make.category("Hospital Beds")
    lab = await make.category("Laboratory Equipment")
    product = await make.product(beds)
    buyer = await make.user("buyer")
    lab_vendor = await make.vendor(lab)

    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "1 month"
    )

    assert result.vendors_notified == 0
    assert await make.notifications(lab_vendor) == []


@pytest.mark.asyncio
async def test_broker_never_receives_its_own_rfq(session, make):
    category = await make.category()
    product = await make.product(category)
    broker = await make.vendor(category)
    await make.price_list(broker, product)
    competitor = await make.vendor(category)
    await make.price_list(competitor, product, price_cents=8_000)
    hospitals_only = await make.vendor(category, quotation_preference="registered_hospitals_only")

    result = await rfq_service.submit_rfq(
        session, broker, [{"product_id": product.id, "quantity": 5}], "2 weeks"
    )

    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.is_broker is True
    sent = await _sent_quotations(session, rfq.id)
    assert [sq.vendor_id for sq in sent] == [competitor.id]
    assert result.vendors_notified == 0
    assert await make.notifications(broker) == []
    assert await make.notifications(hospitals_only) == []


@pytest.mark.asyncio
async def test_submission_records_analytics_event(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")

    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 2}], "2 weeks"
    )

    event = (await session.execute(select(AnalyticsEvent))).scalar_one()
    assert event.type == "rfq_sent"
    assert event.event_metadata == {
        "rfqId": str(result.rfq_id),
        "itemCount": 1,
        "isGuest": False,
    }


@pytest.mark.parametrize(
    "items, code, message",
    [
        ([], BAD_REQUEST, "An RFQ needs at least one item"),
        ([{"product_id": None, "quantity": 0}], BAD_REQUEST, "Quantity must be at least 1"),
        ([{"product_id": uuid.uuid4(), "quantity": 1}], NOT_FOUND, "Product not found"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_items_reject_before_any_write(session, make, items, code, message):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    items = [
        {**item, "product_id": item["product_id"] or product.id} for item in items
    ]

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_rfq(session, buyer, items, "2 weeks")

    assert exc_info.value.code == code
    assert exc_info.value.message == message
    assert await _count(session, Rfq) == 0


@pytest.mark.asyncio
async def test_duplicate_product_in_one_rfq_is_rejected(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_rfq(
            session,
            buyer,
            [
                {"product_id": product.id, "quantity": 1},
                {"product_id": product.id, "quantity": 2},
            ],
            "2 weeks",
        )

    assert exc_info.value.code == BAD_REQUEST
    assert await _count(session, Rfq) == 0


@pytest.mark.asyncio
async def test_unverified_buyer_cannot_submit(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer", verified=False)

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_rfq(
            session, buyer, [{"product_id": product.id, "quantity": 1}], "2 weeks"
        )

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_admin_cannot_submit(session, make):
    category = await make.category()
    product = await make.product(category)
    admin = await make.user("admin")

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_rfq(
            session, admin, [{"product_id": product.id, "quantity": 1}], "2 weeks"
        )

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_blank_delivery_time_is_rejected(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_rfq(
            session, buyer, [{"product_id": product.id, "quantity": 1}], "   "
        )

    assert exc_info.value.code == BAD_REQUEST


# ---------------------------------------------------------------------------
# Guest RFQs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_guest_rfq_skips_matching_and_respects_preferences(session, make):
    category = await make.category()
    product = await make.product(category)
    open_vendor = await make.vendor(category)
    await make.price_list(open_vendor, product)
    registered_only = await make.vendor(category, quotation_preference="registered_all")

    result = await rfq_service.submit_guest_rfq(
        session,
        [{"product_id": product.id, "quantity": 10}],
        guest_name="Jane Wanjiru",
        guest_email="jane@clinic.example.com",
        guest_phone="0712345678",
        expected_delivery_time="1 month",
        guest_company_name="Riverside Clinic",
    )

    assert result.matched_count == 0
    assert result.vendors_notified == 1
    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.is_guest is True
    assert rfq.buyer_id is None
    assert rfq.status == "pending"
    assert await _sent_quotations(session, rfq.id) == []
    assert [n.type for n in await make.notifications(open_vendor)] == ["rfq_needs_quotation"]
    assert await make.notifications(registered_only) == []


@pytest.mark.asyncio
async def test_guest_rfq_requires_contact_details(session, make):
    category = await make.category()
    product = await make.product(category)

    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.submit_guest_rfq(
            session,
            [{"product_id": product.id, "quantity": 1}],
            guest_name="Jane",
            guest_email="",
            guest_phone="0712345678",
            expected_delivery_time="1 month",
        )

    assert exc_info.value.code == BAD_REQUEST
    assert await _count(session, Rfq) == 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rfq_details_are_scoped_to_the_caller(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    stranger = await make.user("buyer")
    vendor_a = await make.vendor(category)
    vendor_b = await make.vendor(category)
    await make.price_list(vendor_a, product)
    await make.price_list(vendor_b, product)
    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "2 weeks"
    )

    owner_view = await rfq_service.get_rfq_details(session, result.rfq_id, buyer)
    vendor_view = await rfq_service.get_rfq_details(session, result.rfq_id, vendor_a)

    assert owner_view.quotation_count == 2
    assert [q.vendor.id for q in vendor_view.quotations] == [str(vendor_a.id)]
    with pytest.raises(ServiceError) as exc_info:
        await rfq_service.get_rfq_details(session, result.rfq_id, stranger)
    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_pending_rfqs_lists_category_items_only(session, make):
    beds = await make.category("Hospital Beds")
    lab = await make.category("Laboratory Equipment")
    bed = await make.product(beds, "ICU Bed")
    centrifuge = await make.product(lab, "Centrifuge")
    buyer = await make.user("buyer")
    vendor = await make.vendor(beds)
    await rfq_service.submit_rfq(
        session,
        buyer,
        [{"product_id": bed.id, "quantity": 2}, {"product_id": centrifuge.id, "quantity": 1}],
        "2 weeks",
    )

    pending = await rfq_service.get_pending_rfqs(session, vendor)

    assert len(pending) == 1
    assert [item.product_id for item in pending[0].items] == [str(bed.id)]
    assert pending[0].items[0].already_quoted is False
