"""
Unit tests for medquote/services/order_service.py

Tests: status_message, update_order_status (vendor only, buyer notified,
       WhatsApp queued on opt-in), confirm_delivery, order stats.
"""

import uuid

import pytest
from fastapi import BackgroundTasks

from medquote.errors import BAD_REQUEST, FORBIDDEN, NOT_FOUND, ServiceError
from medquote.services import order_service


async def _order(make, buyer_fields=None, status="ordered"):
    category = await make.category()
    product = await make.product(category, "Ultrasound Scanner")
    buyer = await make.user("buyer", **(buyer_fields or {}))
    vendor = await make.vendor(category)
    rfq = await make.rfq(buyer, (product, 2), status="completed")
    sq = await make.sent_quotation(rfq, vendor, product, price_cents=150_000, quantity=2, chosen=True)
    order = await make.order(sq, status=status)
    return order, buyer, vendor


@pytest.mark.parametrize(
    "status, tracking, reason, expected",
    [
        ("confirmed", None, None, "Your order has been confirmed by the vendor"),
        ("processing", None, None, "Your order is being processed"),
        ("shipped", None, None, "Your order has been shipped"),
        ("shipped", "TRK-001", None, "Your order has been shipped. Tracking: TRK-001"),
        ("delivered", None, None, "Your order has been delivered"),
        ("cancelled", None, None, "Your order has been cancelled"),
        ("cancelled", None, "Out of stock", "Your order has been cancelled. Reason: Out of stock"),
    ],
)
def test_status_message(status, tracking, reason, expected):
    assert order_service.status_message(status, tracking, reason) == expected


@pytest.mark.asyncio
async def test_vendor_ships_order_and_buyer_is_told(session, make):
    order, buyer, vendor = await _order(make)

    updated = await order_service.update_order_status(
        session, order.id, "shipped", vendor, tracking_number="TRK-001"
    )

    assert updated.status == "shipped"
    assert updated.tracking_number == "TRK-001"
    assert updated.actual_delivery_date is None
    [note] = await make.notifications(buyer, "order_update")
    assert note.message == "Your order has been shipped. Tracking: TRK-001"
    assert note.related_kind == "order"
    assert note.related_id == order.id


@pytest.mark.asyncio
async def test_delivered_status_stamps_delivery_date(session, make):
    order, _buyer, vendor = await _order(make)

    updated = await order_service.update_order_status(session, order.id, "delivered", vendor)

    assert updated.actual_delivery_date is not None


@pytest.mark.asyncio
async def test_only_the_orders_vendor_can_update(session, make):
    order, buyer, _vendor = await _order(make)
    other_vendor = await make.user("vendor")

    for caller in (buyer, other_vendor):
        with pytest.raises(ServiceError) as exc_info:
            await order_service.update_order_status(session, order.id, "confirmed", caller)
        assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_ordered_is_not_a_target_status(session, make):
    order, _buyer, vendor = await _order(make)

    with pytest.raises(ServiceError) as exc_info:
        await order_service.update_order_status(session, order.id, "ordered", vendor)

    assert exc_info.value.code == BAD_REQUEST


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(session, make):
    vendor = await make.user("vendor")

    with pytest.raises(ServiceError) as exc_info:
        await order_service.update_order_status(
            session, uuid.uuid4(), "confirmed", vendor
        )

    assert exc_info.value.code == NOT_FOUND


@pytest.mark.asyncio
async def test_whatsapp_update_queued_for_opted_in_buyer(session, make):
    order, _buyer, vendor = await _order(
        make, {"phone": "0712345678", "whatsapp_notifications": True}
    )
    background_tasks = BackgroundTasks()

    await order_service.update_order_status(
        session, order.id, "processing", vendor, background_tasks=background_tasks
    )

    assert len(background_tasks.tasks) == 1
    phone, text = background_tasks.tasks[0].args
    assert phone == "0712345678"
    assert text == "📦 Order Update: Your order is being processed"


@pytest.mark.asyncio
async def test_buyer_confirms_delivery(session, make):
    order, buyer, vendor = await _order(make, status="shipped")

    confirmed = await order_service.confirm_delivery(session, order.id, buyer)

    assert confirmed.status == "delivered"
    assert confirmed.actual_delivery_date is not None
    [note] = await make.notifications(vendor, "order_update")
    assert note.title == "Delivery Confirmed"


@pytest.mark.asyncio
async def test_later_status_write_wins_over_buyer_confirmation(session, make):
    order, buyer, vendor = await _order(make, status="shipped")
    await order_service.confirm_delivery(session, order.id, buyer)

    updated = await order_service.update_order_status(session, order.id, "cancelled", vendor)

    assert updated.status == "cancelled"


@pytest.mark.asyncio
async def test_vendor_cannot_confirm_delivery(session, make):
    order, _buyer, vendor = await _order(make, status="shipped")

    with pytest.raises(ServiceError) as exc_info:
        await order_service.confirm_delivery(session, order.id, vendor)

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_proof_of_delivery_by_vendor(session, make):
    order, buyer, vendor = await _order(make, status="shipped")

    updated = await order_service.upload_proof_of_delivery(
        session, order.id, "deliveries/pod-123.pdf", vendor
    )

    assert updated.proof_of_delivery == "deliveries/pod-123.pdf"
    with pytest.raises(ServiceError):
        await order_service.upload_proof_of_delivery(session, order.id, "x.pdf", buyer)


@pytest.mark.asyncio
async def test_order_stats_for_vendor(session, make):
    order, _buyer, vendor = await _order(make)

    stats = await order_service.get_order_stats(session, vendor)

    assert stats.total_orders == 1
    assert stats.total_value_cents == order.total_amount_cents
    assert stats.in_progress == 1
    assert stats.delivery_rate == 0
