"""
Unit tests for medquote/services/vendor_quotation_service.py

Tests: price-list CRUD validation, on-demand quoting against a live RFQ
       (delivery to registered buyers, email-only delivery to guests,
       duplicate and completed-RFQ rejection).
"""

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import select

from medquote.errors import BAD_REQUEST, CONFLICT, FORBIDDEN, NOT_FOUND, ServiceError
from medquote.models.rfq import Rfq, SentQuotation
from medquote.services import rfq_service, vendor_quotation_service


def _terms(**overrides) -> dict:
    terms = {
        "price_cents": 45_000,
        "quantity": 2,
        "payment_terms": "credit",
        "delivery_time": "10 days",
        "warranty_period": "2 years",
        "country_of_origin": "Germany",
        "product_specifications": None,
        "product_photo": None,
        "product_description": None,
        "brand": "Dräger",
    }
    terms.update(overrides)
    return terms


async def _sent_for(session, rfq_id) -> list[SentQuotation]:
    result = await session.execute(select(SentQuotation).where(SentQuotation.rfq_id == rfq_id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Price-list entries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_pre_filled_entry(session, make):
    category = await make.category()
    product = await make.product(category)
    vendor = await make.vendor(category)

    vq = await vendor_quotation_service.create_quotation(session, vendor, product.id, _terms())

    assert vq.quotation_type == "pre-filled"
    assert vq.rfq_id is None
    assert vq.active is True
    assert vq.price_cents == 45_000


@pytest.mark.parametrize(
    "overrides",
    [{"price_cents": 0}, {"quantity": 0}, {"payment_terms": "barter"}],
)
@pytest.mark.asyncio
async def test_invalid_terms_are_rejected(session, make, overrides):
    category = await make.category()
    product = await make.product(category)
    vendor = await make.vendor(category)

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, product.id, _terms(**overrides)
        )

    assert exc_info.value.code == BAD_REQUEST


@pytest.mark.asyncio
async def test_buyers_cannot_create_entries(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(session, buyer, product.id, _terms())

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_updating_entry_leaves_sent_snapshots_alone(session, make):
    category = await make.category()
    product = await make.product(category)
    vendor = await make.vendor(category)
    buyer = await make.user("buyer")
    vq = await make.price_list(vendor, product, price_cents=30_000)
    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "2 weeks"
    )

    await vendor_quotation_service.update_quotation(
        session, vendor, vq.id, _terms(price_cents=99_000)
    )

    assert vq.price_cents == 99_000
    [sent] = await _sent_for(session, result.rfq_id)
    assert sent.price_cents == 30_000


@pytest.mark.asyncio
async def test_other_vendors_entry_is_not_found(session, make):
    category = await make.category()
    product = await make.product(category)
    owner = await make.vendor(category)
    intruder = await make.vendor(category)
    vq = await make.price_list(owner, product)

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.delete_quotation(session, intruder, vq.id)

    assert exc_info.value.code == NOT_FOUND


# ---------------------------------------------------------------------------
# On-demand quoting
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_on_demand_quote_reaches_registered_buyer(session, make):
    category = await make.category()
    product = await make.product(category, "Anaesthesia Machine")
    buyer = await make.user("buyer")
    vendor = await make.vendor(category, company_name="Nairobi Medical Supplies")
    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "2 weeks"
    )

    vq = await vendor_quotation_service.create_quotation(
        session, vendor, product.id, _terms(), rfq_id=result.rfq_id
    )

    assert vq.quotation_type == "on-demand"
    [sent] = await _sent_for(session, result.rfq_id)
    assert sent.vendor_id == vendor.id
    assert sent.quotation_id == vq.id
    assert sent.quotation_type == "on-demand"
    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.status == "quoted"

    [note] = await make.notifications(buyer, "quotation_sent")
    assert note.message == (
        "Nairobi Medical Supplies sent you a quotation for Anaesthesia Machine"
    )
    assert note.related_kind == "sent_quotation"
    assert note.related_id == sent.id


@pytest.mark.asyncio
async def test_second_quote_for_same_item_conflicts(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category)
    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 1}], "2 weeks"
    )
    await vendor_quotation_service.create_quotation(
        session, vendor, product.id, _terms(), rfq_id=result.rfq_id
    )

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, product.id, _terms(price_cents=40_000), rfq_id=result.rfq_id
        )

    assert exc_info.value.code == CONFLICT
    assert len(await _sent_for(session, result.rfq_id)) == 1


@pytest.mark.asyncio
async def test_completed_rfq_cannot_be_quoted(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category)
    rfq = await make.rfq(buyer, (product, 1), status="completed")

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, product.id, _terms(), rfq_id=rfq.id
        )

    assert exc_info.value.code == BAD_REQUEST
    assert exc_info.value.message == "This RFQ is already completed"


@pytest.mark.asyncio
async def test_product_outside_rfq_cannot_be_quoted(session, make):
    category = await make.category()
    requested = await make.product(category)
    other = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category)
    rfq = await make.rfq(buyer, (requested, 1))

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, other.id, _terms(), rfq_id=rfq.id
        )

    assert exc_info.value.code == BAD_REQUEST


@pytest.mark.asyncio
async def test_unverified_vendor_cannot_quote_on_rfq(session, make):
    category = await make.category()
    product = await make.product(category)
    buyer = await make.user("buyer")
    vendor = await make.vendor(category, verified=False)
    rfq = await make.rfq(buyer, (product, 1))

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, product.id, _terms(), rfq_id=rfq.id
        )

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_guest_quote_is_emailed_not_stored_as_sent_quotation(session, make):
    category = await make.category()
    product = await make.product(category)
    vendor = await make.vendor(category)
    result = await rfq_service.submit_guest_rfq(
        session,
        [{"product_id": product.id, "quantity": 4}],
        guest_name="Jane",
        guest_email="jane@clinic.example.com",
        guest_phone="0712345678",
        expected_delivery_time="1 month",
    )
    background_tasks = BackgroundTasks()

    await vendor_quotation_service.create_quotation(
        session, vendor, product.id, _terms(), rfq_id=result.rfq_id,
        background_tasks=background_tasks,
    )

    assert await _sent_for(session, result.rfq_id) == []
    assert len(background_tasks.tasks) == 1
    assert background_tasks.tasks[0].args[0] == ["jane@clinic.example.com"]
    rfq = await session.get(Rfq, result.rfq_id)
    assert rfq.status == "quoted"


@pytest.mark.asyncio
async def test_guest_rfq_closed_to_registered_only_vendor(session, make):
    category = await make.category()
    product = await make.product(category)
    vendor = await make.vendor(category, quotation_preference="registered_all")
    result = await rfq_service.submit_guest_rfq(
        session,
        [{"product_id": product.id, "quantity": 1}],
        guest_name="Jane",
        guest_email="jane@clinic.example.com",
        guest_phone="0712345678",
        expected_delivery_time="1 month",
    )

    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session, vendor, product.id, _terms(), rfq_id=result.rfq_id
        )

    assert exc_info.value.code == BAD_REQUEST
