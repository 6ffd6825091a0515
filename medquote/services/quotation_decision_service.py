"""
Buyer decisions on received quotations.

Choosing a quotation completes the RFQ, opens an order and reveals the
buyer's contact to the vendor. Declining removes the quotation entirely; only
the vendor's notification records that it existed.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.errors import bad_request, conflict, forbidden
from medquote.models.catalog import Product
from medquote.models.order import Order
from medquote.models.rfq import SentQuotation
from medquote.models.user import User
from medquote.services import notification_service, order_service, whatsapp_service
from medquote.services.rfq_service import get_rfq, get_sent_quotation_row

logger = structlog.get_logger()


@dataclass
class ChooseResult:
    order: Order
    already_chosen: bool


async def choose_quotation(
    session: AsyncSession,
    sent_quotation_id: uuid.UUID,
    buyer: User,
    background_tasks: Optional[BackgroundTasks] = None,
) -> ChooseResult:
    sq = await get_sent_quotation_row(session, sent_quotation_id)
    if sq.buyer_id != buyer.id:
        raise forbidden("Only the receiving buyer can choose this quotation")

    rfq = await get_rfq(session, sq.rfq_id, for_update=True)
    await session.refresh(sq)

    if sq.chosen:
        order = await order_service.create_order(session, sq)
        return ChooseResult(order, already_chosen=True)

    other = await session.execute(
        select(SentQuotation.id).where(
            SentQuotation.rfq_id == rfq.id,
            SentQuotation.chosen == True,  # noqa: E712
            SentQuotation.id != sq.id,
        )
    )
    if other.first() is not None:
        raise conflict("Another quotation has already been chosen for this RFQ")

    sq.chosen = True
    sq.opened = True
    rfq.status = "completed"
    order = await order_service.create_order(session, sq)

    product = await session.get(Product, sq.product_id)
    vendor = await session.get(User, sq.vendor_id)
    await notification_service.notify(
        session,
        sq.vendor_id,
        "quotation_chosen",
        "Your Quotation Was Chosen!",
        f"{buyer.display_name} chose your quotation for {product.name}. "
        f"Buyer contact: {buyer.name}, {buyer.phone or 'N/A'}, {buyer.email}. "
        f"Order ID: {order.id}",
        notification_service.related_order(order.id),
    )
    await session.flush()

    try:
        notification_service.queue_direct_message(
            background_tasks,
            vendor,
            whatsapp_service.quotation_chosen_message(
                product.name, buyer.display_name, buyer.phone, buyer.email
            ),
        )
    except Exception as e:
        logger.error("quotation_chosen_whatsapp_failed", sent_quotation_id=str(sq.id), error=str(e))

    logger.info(
        "quotation_chosen",
        sent_quotation_id=str(sq.id),
        rfq_id=str(rfq.id),
        order_id=str(order.id),
    )
    return ChooseResult(order, already_chosen=False)


async def decline_quotation(
    session: AsyncSession, sent_quotation_id: uuid.UUID, reason: str, buyer: User
):
    if not reason or not reason.strip():
        raise bad_request("A reason is required to decline a quotation")
    sq = await get_sent_quotation_row(session, sent_quotation_id)
    if sq.buyer_id != buyer.id:
        raise forbidden("Only the receiving buyer can decline this quotation")

    await get_rfq(session, sq.rfq_id, for_update=True)
    await session.refresh(sq)
    if sq.chosen:
        raise bad_request("A chosen quotation cannot be declined")

    product = await session.get(Product, sq.product_id)
    await notification_service.notify(
        session,
        sq.vendor_id,
        "quotation_declined",
        "Quotation Declined",
        f"Your quotation for {product.name} was declined. Reason: {reason.strip()}",
        notification_service.related_rfq(sq.rfq_id),
    )
    await session.delete(sq)
    await session.flush()
    logger.info("quotation_declined", sent_quotation_id=str(sent_quotation_id))


async def create_order_for_quotation(
    session: AsyncSession,
    rfq_id: uuid.UUID,
    sent_quotation_id: uuid.UUID,
    buyer: User,
    background_tasks: Optional[BackgroundTasks] = None,
) -> ChooseResult:
    """Explicit order creation goes through the same path as choosing."""
    sq = await get_sent_quotation_row(session, sent_quotation_id)
    if sq.rfq_id != rfq_id:
        raise bad_request("Quotation does not belong to this RFQ")
    return await choose_quotation(session, sent_quotation_id, buyer, background_tasks)
