"""
Unit tests for medquote/services/quotation_decision_service.py

Tests: choose_quotation (order creation, RFQ completion, contact reveal,
       idempotent re-choose, one winner per RFQ), decline_quotation.
"""

import pytest
from sqlalchemy import select

from medquote.errors import BAD_REQUEST, CONFLICT, FORBIDDEN, ServiceError
from medquote.models.order import Order
from medquote.models.rfq import Rfq, SentQuotation
from medquote.services import quotation_decision_service, rfq_service


async def _rfq_with_two_quotes(session, make):
    category = await make.category()
    product = await make.product(category, "Infusion Pump")
    buyer = await make.user(
        "buyer", company_name="St. Mary's Hospital", phone="0700111222", email="procure@stmarys.example.com"
    )
    cheap = await make.vendor(category, email="sales@cheap.example.com")
    pricey = await make.vendor(category, email="sales@pricey.example.com")
    await make.price_list(cheap, product, price_cents=20_000, quantity=3)
    await make.price_list(pricey, product, price_cents=25_000, quantity=3)
    result = await rfq_service.submit_rfq(
        session, buyer, [{"product_id": product.id, "quantity": 3}], "2 weeks"
    )
    sent = (
        await session.execute(
            select(SentQuotation)
            .where(SentQuotation.rfq_id == result.rfq_id)
            .order_by(SentQuotation.price_cents)
        )
    ).scalars().all()
    return buyer, cheap, pricey, result.rfq_id, sent[0], sent[1]


@pytest.mark.asyncio
async def test_choose_creates_order_and_completes_rfq(session, make):
    buyer, cheap, _pricey, rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)

    result = await quotation_decision_service.choose_quotation(session, sq.id, buyer)

    assert result.already_chosen is False
    order = result.order
    assert order.status == "ordered"
    assert order.quotation_id == sq.id
    assert order.vendor_id == cheap.id
    assert order.total_amount_cents == 60_000
    assert sq.chosen is True and sq.opened is True
    rfq = await session.get(Rfq, rfq_id)
    assert rfq.status == "completed"

    [note] = await make.notifications(cheap, "quotation_chosen")
    assert "procure@stmarys.example.com" in note.message
    assert "0700111222" in note.message
    assert note.related_kind == "order"
    assert note.related_id == order.id


@pytest.mark.asyncio
async def test_choosing_again_returns_the_same_order(session, make):
    buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)
    first = await quotation_decision_service.choose_quotation(session, sq.id, buyer)

    second = await quotation_decision_service.choose_quotation(session, sq.id, buyer)

    assert second.already_chosen is True
    assert second.order.id == first.order.id
    orders = (await session.execute(select(Order))).scalars().all()
    assert len(orders) == 1


@pytest.mark.asyncio
async def test_only_one_quotation_per_rfq_can_win(session, make):
    buyer, _cheap, pricey, _rfq_id, sq, other = await _rfq_with_two_quotes(session, make)
    await quotation_decision_service.choose_quotation(session, sq.id, buyer)

    with pytest.raises(ServiceError) as exc_info:
        await quotation_decision_service.choose_quotation(session, other.id, buyer)

    assert exc_info.value.code == CONFLICT
    assert other.chosen is False
    assert await make.notifications(pricey, "quotation_chosen") == []


@pytest.mark.asyncio
async def test_only_receiving_buyer_can_choose(session, make):
    _buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)
    stranger = await make.user("buyer")

    with pytest.raises(ServiceError) as exc_info:
        await quotation_decision_service.choose_quotation(session, sq.id, stranger)

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_vendor_contact_hidden_until_chosen(session, make):
    buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)

    before = await rfq_service.get_sent_quotation(session, sq.id, buyer)
    assert before.vendor.revealed is False
    assert before.vendor.email is None
    assert before.vendor.phone is None

    await quotation_decision_service.choose_quotation(session, sq.id, buyer)
    after = await rfq_service.get_sent_quotation(session, sq.id, buyer)

    assert after.vendor.revealed is True
    assert after.vendor.email == "sales@cheap.example.com"
    assert after.rfq_status == "completed"


@pytest.mark.asyncio
async def test_decline_removes_quotation_and_tells_vendor(session, make):
    buyer, _cheap, pricey, _rfq_id, _sq, other = await _rfq_with_two_quotes(session, make)
    other_id = other.id

    await quotation_decision_service.decline_quotation(session, other_id, "  Too expensive  ", buyer)

    assert await session.get(SentQuotation, other_id) is None
    [note] = await make.notifications(pricey, "quotation_declined")
    assert note.message == "Your quotation for Infusion Pump was declined. Reason: Too expensive"
    assert note.related_kind == "rfq"


@pytest.mark.asyncio
async def test_decline_requires_a_reason(session, make):
    buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)

    with pytest.raises(ServiceError) as exc_info:
        await quotation_decision_service.decline_quotation(session, sq.id, "   ", buyer)

    assert exc_info.value.code == BAD_REQUEST
    assert exc_info.value.message == "A reason is required to decline a quotation"


@pytest.mark.asyncio
async def test_chosen_quotation_cannot_be_declined(session, make):
    buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)
    await quotation_decision_service.choose_quotation(session, sq.id, buyer)

    with pytest.raises(ServiceError) as exc_info:
        await quotation_decision_service.decline_quotation(session, sq.id, "Changed mind", buyer)

    assert exc_info.value.code == BAD_REQUEST
    assert sq.chosen is True


@pytest.mark.asyncio
async def test_explicit_order_creation_checks_rfq(session, make):
    buyer, _cheap, _pricey, _rfq_id, sq, _other = await _rfq_with_two_quotes(session, make)
    unrelated = await make.rfq(buyer)

    with pytest.raises(ServiceError) as exc_info:
        await quotation_decision_service.create_order_for_quotation(
            session, unrelated.id, sq.id, buyer
        )

    assert exc_info.value.code == BAD_REQUEST
