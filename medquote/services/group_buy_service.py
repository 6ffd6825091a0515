"""
Group buying: hospitals pool demand for one product.

A group buy converts into an ordinary RFQ, owned by its creator, for the
summed quantity of its active participants once both the target quantity and
the minimum participant count are reached. Conversion runs the normal
matching and vendor fan-out.
"""

import math
import uuid
from datetime import datetime
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import utcnow
from medquote.errors import bad_request, conflict, not_found
from medquote.models.catalog import Product
from medquote.models.group_buy import GroupBuy, GroupBuyParticipant
from medquote.models.rfq import Rfq, RfqItem
from medquote.models.user import User
from medquote.schemas.group_buy import GroupBuyResponse, ParticipantResponse
from medquote.schemas.common import iso
from medquote.schemas.rfq import product_summary
from medquote.services import notification_service, rfq_service, whatsapp_service
from medquote.services.guards import check_role, check_verified
from medquote.services.price_analytics_service import get_product_market_price

logger = structlog.get_logger()

EXPECTED_SAVINGS_PERCENT = 15
GROUP_BUY_DELIVERY_TIME = "As agreed with group buy participants"


# ── Reads ───────────────────────────────────────────────────


async def get_group_buy(
    session: AsyncSession, group_buy_id: uuid.UUID, for_update: bool = False
) -> GroupBuy:
    q = select(GroupBuy).where(GroupBuy.id == group_buy_id)
    if for_update:
        q = q.with_for_update()
    group_buy = (await session.execute(q)).scalar_one_or_none()
    if not group_buy:
        raise not_found("Group buy not found")
    return group_buy


async def _active_participants(
    session: AsyncSession, group_buy_id: uuid.UUID
) -> list[GroupBuyParticipant]:
    result = await session.execute(
        select(GroupBuyParticipant)
        .where(
            GroupBuyParticipant.group_buy_id == group_buy_id,
            GroupBuyParticipant.status == "active",
        )
        .order_by(GroupBuyParticipant.joined_at, GroupBuyParticipant.id)
    )
    return list(result.scalars().all())


def days_left(deadline: datetime, now: Optional[datetime] = None) -> int:
    remaining = (deadline - (now or utcnow())).total_seconds() / 86400
    return max(0, math.ceil(remaining))


def _group_buy_response(
    group_buy: GroupBuy,
    product: Optional[Product],
    participants: list[GroupBuyParticipant],
    hospitals: Optional[dict[uuid.UUID, User]] = None,
) -> GroupBuyResponse:
    return GroupBuyResponse(
        id=str(group_buy.id),
        product_id=str(group_buy.product_id),
        title=group_buy.title,
        description=group_buy.description,
        target_quantity=group_buy.target_quantity,
        current_quantity=group_buy.current_quantity,
        status=group_buy.status,
        deadline=iso(group_buy.deadline),
        created_by=str(group_buy.created_by),
        minimum_participants=group_buy.minimum_participants,
        rfq_id=str(group_buy.rfq_id) if group_buy.rfq_id else None,
        created_at=iso(group_buy.created_at) or "",
        product=product_summary(product),
        participant_count=len(participants),
        progress=(
            group_buy.current_quantity / group_buy.target_quantity * 100
            if group_buy.target_quantity > 0
            else 0.0
        ),
        days_left=days_left(group_buy.deadline),
        participants=[
            ParticipantResponse(
                id=str(p.id),
                hospital_id=str(p.hospital_id),
                hospital_name=(
                    hospitals[p.hospital_id].display_name
                    if hospitals and p.hospital_id in hospitals
                    else None
                ),
                quantity=p.quantity,
                status=p.status,
                joined_at=iso(p.joined_at) or "",
            )
            for p in participants
        ]
        if hospitals is not None
        else [],
    )


async def get_active_group_buys(
    session: AsyncSession, product_id: Optional[uuid.UUID] = None
) -> list[GroupBuyResponse]:
    q = (
        select(GroupBuy, Product)
        .join(Product, Product.id == GroupBuy.product_id)
        .where(GroupBuy.status == "open")
    )
    if product_id:
        q = q.where(GroupBuy.product_id == product_id)
    result = await session.execute(q.order_by(GroupBuy.deadline, GroupBuy.id))
    responses = []
    for group_buy, product in result.all():
        participants = await _active_participants(session, group_buy.id)
        responses.append(_group_buy_response(group_buy, product, participants))
    return responses


async def get_my_group_buys(session: AsyncSession, user: User) -> list[GroupBuyResponse]:
    result = await session.execute(
        select(GroupBuy, Product)
        .join(Product, Product.id == GroupBuy.product_id)
        .join(GroupBuyParticipant, GroupBuyParticipant.group_buy_id == GroupBuy.id)
        .where(GroupBuyParticipant.hospital_id == user.id)
        .distinct()
        .order_by(GroupBuy.created_at.desc())
    )
    responses = []
    for group_buy, product in result.all():
        participants = await _active_participants(session, group_buy.id)
        responses.append(_group_buy_response(group_buy, product, participants))
    return responses


async def get_group_buy_details(session: AsyncSession, group_buy_id: uuid.UUID) -> GroupBuyResponse:
    group_buy = await get_group_buy(session, group_buy_id)
    product = await session.get(Product, group_buy.product_id)
    participants = await _active_participants(session, group_buy.id)
    hospitals: dict[uuid.UUID, User] = {}
    if participants:
        result = await session.execute(
            select(User).where(User.id.in_({p.hospital_id for p in participants}))
        )
        hospitals = {u.id: u for u in result.scalars().all()}
    return _group_buy_response(group_buy, product, participants, hospitals)


# ── Mutations ───────────────────────────────────────────────


def _check_quantity(quantity: int):
    if quantity < 1:
        raise bad_request("Quantity must be at least 1")


async def create_group_buy(
    session: AsyncSession,
    buyer: User,
    product_id: uuid.UUID,
    title: str,
    target_quantity: int,
    deadline: datetime,
    initial_quantity: int,
    minimum_participants: int = 2,
    description: Optional[str] = None,
    rfq_id: Optional[uuid.UUID] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> GroupBuy:
    check_role(buyer, "buyer", message="Only hospitals can create group buys")
    check_verified(buyer, message="Your account must be verified before creating group buys")
    _check_quantity(initial_quantity)
    if target_quantity < 1:
        raise bad_request("Target quantity must be at least 1")
    if minimum_participants < 1:
        raise bad_request("Minimum participants must be at least 1")
    if deadline <= utcnow():
        raise bad_request("Deadline must be in the future")
    product = await session.get(Product, product_id)
    if not product:
        raise not_found("Product not found")

    group_buy = GroupBuy(
        product_id=product_id,
        title=title,
        description=description,
        target_quantity=target_quantity,
        current_quantity=initial_quantity,
        status="open",
        deadline=deadline,
        created_by=buyer.id,
        minimum_participants=minimum_participants,
    )
    session.add(group_buy)
    await session.flush()
    session.add(
        GroupBuyParticipant(
            group_buy_id=group_buy.id,
            hospital_id=buyer.id,
            rfq_id=rfq_id,
            quantity=initial_quantity,
            status="active",
        )
    )
    await session.flush()

    await _alert_interested_buyers(session, group_buy, product, buyer, background_tasks)
    logger.info(
        "group_buy_created",
        group_buy_id=str(group_buy.id),
        product_id=str(product_id),
        target_quantity=target_quantity,
    )
    return group_buy


async def _alert_interested_buyers(
    session: AsyncSession,
    group_buy: GroupBuy,
    product: Product,
    creator: User,
    background_tasks: Optional[BackgroundTasks],
):
    """Tell buyers who have requested this product before that a group buy exists."""
    result = await session.execute(
        select(User)
        .join(Rfq, Rfq.buyer_id == User.id)
        .join(RfqItem, RfqItem.rfq_id == Rfq.id)
        .where(
            RfqItem.product_id == product.id,
            User.role == "buyer",
            User.verified == True,  # noqa: E712
            User.id != creator.id,
        )
        .distinct()
    )
    buyers = list(result.scalars().all())
    if not buyers:
        return

    market = await get_product_market_price(session, product.id)
    potential_savings = (
        round(market.average_price * group_buy.target_quantity * EXPECTED_SAVINGS_PERCENT / 100)
        if market
        else 0
    )
    for buyer in buyers:
        await notification_service.notify(
            session,
            buyer.id,
            "group_buy",
            "Group Buying Opportunity",
            f"Hospitals are pooling orders for {product.name}. "
            f"Join \"{group_buy.title}\" before the deadline to save on bulk pricing.",
            notification_service.related_group_buy(group_buy.id),
        )
        try:
            notification_service.queue_direct_message(
                background_tasks,
                buyer,
                whatsapp_service.group_buy_message(product.name, 1, potential_savings),
            )
        except Exception as e:
            logger.error("group_buy_whatsapp_queue_failed", buyer_id=str(buyer.id), error=str(e))


async def join_group_buy(
    session: AsyncSession,
    buyer: User,
    group_buy_id: uuid.UUID,
    quantity: int,
    rfq_id: Optional[uuid.UUID] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> GroupBuyParticipant:
    check_role(buyer, "buyer", message="Only hospitals can join group buys")
    _check_quantity(quantity)
    group_buy = await get_group_buy(session, group_buy_id, for_update=True)
    if group_buy.status != "open":
        raise bad_request("This group buy is no longer open")
    if group_buy.deadline < utcnow():
        raise bad_request("This group buy has expired")

    participants = await _active_participants(session, group_buy.id)
    if any(p.hospital_id == buyer.id for p in participants):
        raise conflict("You are already participating in this group buy")

    participant = GroupBuyParticipant(
        group_buy_id=group_buy.id,
        hospital_id=buyer.id,
        rfq_id=rfq_id,
        quantity=quantity,
        status="active",
    )
    session.add(participant)
    participants.append(participant)
    group_buy.current_quantity = sum(p.quantity for p in participants)
    await session.flush()
    logger.info(
        "group_buy_joined",
        group_buy_id=str(group_buy.id),
        buyer_id=str(buyer.id),
        current_quantity=group_buy.current_quantity,
    )

    if _target_reached(group_buy, participants):
        await check_and_convert_group_buy(session, group_buy.id, background_tasks)
    return participant


async def withdraw_from_group_buy(
    session: AsyncSession, buyer: User, group_buy_id: uuid.UUID
) -> GroupBuyParticipant:
    group_buy = await get_group_buy(session, group_buy_id, for_update=True)
    participants = await _active_participants(session, group_buy.id)
    mine = next((p for p in participants if p.hospital_id == buyer.id), None)
    if mine is None:
        raise not_found("You are not participating in this group buy")

    mine.status = "withdrawn"
    group_buy.current_quantity = sum(p.quantity for p in participants if p is not mine)
    await session.flush()
    logger.info("group_buy_withdrawn", group_buy_id=str(group_buy.id), buyer_id=str(buyer.id))
    return mine


def _target_reached(group_buy: GroupBuy, participants: list[GroupBuyParticipant]) -> bool:
    quantity = sum(p.quantity for p in participants)
    return (
        quantity >= group_buy.target_quantity
        and len(participants) >= group_buy.minimum_participants
    )


async def check_and_convert_group_buy(
    session: AsyncSession,
    group_buy_id: uuid.UUID,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Optional[uuid.UUID]:
    """Convert to an RFQ if the target is met. Returns the new RFQ id, or None."""
    group_buy = await get_group_buy(session, group_buy_id, for_update=True)
    if group_buy.status != "open":
        return None
    participants = await _active_participants(session, group_buy.id)
    if not _target_reached(group_buy, participants):
        return None

    creator = await session.get(User, group_buy.created_by)
    quantity = sum(p.quantity for p in participants)
    submission = await rfq_service.submit_rfq(
        session,
        creator,
        [{"product_id": group_buy.product_id, "quantity": quantity}],
        GROUP_BUY_DELIVERY_TIME,
        background_tasks,
    )

    group_buy.status = "closed"
    group_buy.current_quantity = quantity
    group_buy.rfq_id = submission.rfq_id
    product = await session.get(Product, group_buy.product_id)
    for p in participants:
        p.rfq_id = submission.rfq_id
        p.status = "completed"
        await notification_service.notify(
            session,
            p.hospital_id,
            "group_buy",
            "Group Buy Target Reached! 🎉",
            f"The group buy for {product.name if product else 'product'} has reached its "
            "target. RFQ has been sent to vendors.",
            notification_service.related_rfq(submission.rfq_id),
        )
    await session.flush()

    logger.info(
        "group_buy_converted",
        group_buy_id=str(group_buy.id),
        rfq_id=str(submission.rfq_id),
        quantity=quantity,
        participants=len(participants),
    )
    return submission.rfq_id
