"""
Order lifecycle: ordered → confirmed → processing → shipped → delivered,
with cancelled reachable from anywhere.

Transitions are deliberately permissive: the vendor may move an order to any
target status, and the buyer may independently confirm delivery. When both
report delivery the later write wins.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
import structlog

from medquote.database import utcnow
from medquote.errors import bad_request, forbidden, not_found
from medquote.models.catalog import Product
from medquote.models.order import Order, IN_PROGRESS_STATUSES
from medquote.models.rfq import SentQuotation
from medquote.models.user import User
from medquote.schemas.order import OrderResponse, OrderStatsResponse, order_response
from medquote.services import notification_service, whatsapp_service

logger = structlog.get_logger()

UPDATABLE_STATUSES = ("confirmed", "processing", "shipped", "delivered", "cancelled")


def status_message(
    status: str, tracking_number: Optional[str] = None, cancel_reason: Optional[str] = None
) -> str:
    if status == "shipped" and tracking_number:
        return f"Your order has been shipped. Tracking: {tracking_number}"
    if status == "cancelled" and cancel_reason:
        return f"Your order has been cancelled. Reason: {cancel_reason}"
    return {
        "confirmed": "Your order has been confirmed by the vendor",
        "processing": "Your order is being processed",
        "shipped": "Your order has been shipped",
        "delivered": "Your order has been delivered",
        "cancelled": "Your order has been cancelled",
    }[status]


async def get_order(session: AsyncSession, order_id: uuid.UUID, for_update: bool = False) -> Order:
    q = select(Order).where(Order.id == order_id)
    if for_update:
        q = q.with_for_update()
    order = (await session.execute(q)).scalar_one_or_none()
    if not order:
        raise not_found("Order not found")
    return order


async def get_order_for_quotation(
    session: AsyncSession, sent_quotation_id: uuid.UUID
) -> Optional[Order]:
    result = await session.execute(select(Order).where(Order.quotation_id == sent_quotation_id))
    return result.scalar_one_or_none()


async def create_order(session: AsyncSession, sq: SentQuotation) -> Order:
    """One order per chosen quotation. The total is frozen at creation."""
    existing = await get_order_for_quotation(session, sq.id)
    if existing:
        return existing

    order = Order(
        rfq_id=sq.rfq_id,
        quotation_id=sq.id,
        buyer_id=sq.buyer_id,
        vendor_id=sq.vendor_id,
        product_id=sq.product_id,
        quantity=sq.quantity,
        total_amount_cents=sq.price_cents * sq.quantity,
        status="ordered",
    )
    session.add(order)
    await session.flush()
    logger.info(
        "order_created",
        order_id=str(order.id),
        quotation_id=str(sq.id),
        total_amount_cents=order.total_amount_cents,
    )
    return order


async def update_order_status(
    session: AsyncSession,
    order_id: uuid.UUID,
    status: str,
    vendor: User,
    tracking_number: Optional[str] = None,
    estimated_delivery_date: Optional[datetime] = None,
    delivery_notes: Optional[str] = None,
    cancel_reason: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Order:
    if status not in UPDATABLE_STATUSES:
        raise bad_request(f"Status must be one of: {', '.join(UPDATABLE_STATUSES)}")
    order = await get_order(session, order_id, for_update=True)
    if order.vendor_id != vendor.id:
        raise forbidden("Not authorized to update this order")

    order.status = status
    if tracking_number:
        order.tracking_number = tracking_number
    if estimated_delivery_date:
        order.estimated_delivery_date = estimated_delivery_date
    if delivery_notes:
        order.delivery_notes = delivery_notes
    if cancel_reason:
        order.cancel_reason = cancel_reason
    now = utcnow()
    if status == "delivered":
        order.actual_delivery_date = now
    order.last_updated = now

    message = status_message(status, tracking_number, cancel_reason)
    await notification_service.notify(
        session,
        order.buyer_id,
        "order_update",
        "Order Status Update",
        message,
        notification_service.related_order(order.id),
    )
    await session.flush()

    buyer = await session.get(User, order.buyer_id)
    try:
        notification_service.queue_direct_message(
            background_tasks, buyer, whatsapp_service.order_update_message(message)
        )
    except Exception as e:
        logger.error("order_whatsapp_queue_failed", order_id=str(order.id), error=str(e))

    logger.info("order_status_updated", order_id=str(order.id), status=status)
    return order


async def upload_proof_of_delivery(
    session: AsyncSession, order_id: uuid.UUID, proof_of_delivery: str, vendor: User
) -> Order:
    order = await get_order(session, order_id, for_update=True)
    if order.vendor_id != vendor.id:
        raise forbidden("Not authorized to update this order")
    order.proof_of_delivery = proof_of_delivery
    order.last_updated = utcnow()
    await session.flush()
    logger.info("order_proof_of_delivery_uploaded", order_id=str(order.id))
    return order


async def confirm_delivery(session: AsyncSession, order_id: uuid.UUID, buyer: User) -> Order:
    order = await get_order(session, order_id, for_update=True)
    if order.buyer_id != buyer.id:
        raise forbidden("Not authorized to confirm this order")

    now = utcnow()
    order.status = "delivered"
    order.actual_delivery_date = now
    order.last_updated = now
    await notification_service.notify(
        session,
        order.vendor_id,
        "order_update",
        "Delivery Confirmed",
        "The buyer has confirmed delivery of the order",
        notification_service.related_order(order.id),
    )
    await session.flush()
    logger.info("order_delivery_confirmed", order_id=str(order.id))
    return order


# ── Queries ─────────────────────────────────────────────────


async def _orders_with_parties(session: AsyncSession, *conditions) -> list[OrderResponse]:
    vendor = aliased(User)
    buyer = aliased(User)
    result = await session.execute(
        select(Order, Product, vendor, buyer)
        .join(Product, Product.id == Order.product_id)
        .join(vendor, vendor.id == Order.vendor_id)
        .join(buyer, buyer.id == Order.buyer_id)
        .where(*conditions)
        .order_by(Order.order_date.desc(), Order.id)
    )
    return [order_response(o, p, v, b) for o, p, v, b in result.all()]


async def get_my_orders(session: AsyncSession, buyer: User) -> list[OrderResponse]:
    return await _orders_with_parties(session, Order.buyer_id == buyer.id)


async def get_vendor_orders(session: AsyncSession, vendor: User) -> list[OrderResponse]:
    return await _orders_with_parties(session, Order.vendor_id == vendor.id)


async def get_order_details(session: AsyncSession, order_id: uuid.UUID, caller: User) -> OrderResponse:
    order = await get_order(session, order_id)
    if caller.role != "admin" and caller.id not in (order.buyer_id, order.vendor_id):
        raise forbidden("Access denied")
    rows = await _orders_with_parties(session, Order.id == order.id)
    return rows[0]


async def get_order_stats(session: AsyncSession, user: User) -> OrderStatsResponse:
    column = Order.vendor_id if user.role == "vendor" else Order.buyer_id
    result = await session.execute(select(Order.status, Order.total_amount_cents).where(column == user.id))
    rows = result.all()
    total = len(rows)
    delivered = sum(1 for status, _ in rows if status == "delivered")
    return OrderStatsResponse(
        total_orders=total,
        total_value_cents=sum(amount for _, amount in rows),
        delivered=delivered,
        in_progress=sum(1 for status, _ in rows if status in IN_PROGRESS_STATUSES),
        delivery_rate=(delivered / total) * 100 if total > 0 else 0,
    )
