"""
RFQ engine: submission, price-list matching and vendor fan-out.

Submission runs in four stages inside the request transaction:

  1. Validate every item (quantity, product existence) before any write.
  2. Create the RFQ and its items.
  3. Match: every active price-list entry for an item's product, owned by
     a verified vendor, becomes a SentQuotation snapshot of that entry.
  4. Solicit: verified vendors assigned to the product's category who have
     NO active entry for it are told a quotable RFQ exists.

Stages 3 and 4 address disjoint vendor populations per product. Guests skip
stage 3 entirely; only vendors whose preference admits guests are solicited.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
import structlog

from medquote.errors import bad_request, forbidden, not_found
from medquote.models.analytics_event import AnalyticsEvent
from medquote.models.catalog import Product
from medquote.models.rfq import Rfq, RfqItem, SentQuotation
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.schemas.rfq import (
    RfqResponse,
    SentQuotationResponse,
    rfq_item_response,
    rfq_response,
    sent_quotation_response,
)
from medquote.services import notification_service, whatsapp_service
from medquote.services.guards import check_role, check_verified
from medquote.services.visibility import is_rfq_visible_to_vendor, should_notify_vendor

logger = structlog.get_logger()


@dataclass
class SubmissionResult:
    rfq_id: uuid.UUID
    matched_count: int
    vendors_notified: int


# ── Validation ──────────────────────────────────────────────


async def _validate_items(session: AsyncSession, items: list[dict]) -> dict[uuid.UUID, Product]:
    """Check the item list and load its products. Raises before anything is written."""
    if not items:
        raise bad_request("An RFQ needs at least one item")

    seen: set[uuid.UUID] = set()
    for item in items:
        if item["quantity"] < 1:
            raise bad_request("Quantity must be at least 1")
        if item["product_id"] in seen:
            raise bad_request("Each product may appear only once per RFQ")
        seen.add(item["product_id"])

    result = await session.execute(select(Product).where(Product.id.in_(seen)))
    products = {p.id: p for p in result.scalars().all()}
    if len(products) != len(seen):
        raise not_found("Product not found")
    return products


def _create_rfq_items(session: AsyncSession, rfq: Rfq, items: list[dict]) -> list[RfqItem]:
    rfq_items = [
        RfqItem(rfq_id=rfq.id, product_id=item["product_id"], quantity=item["quantity"])
        for item in items
    ]
    session.add_all(rfq_items)
    return rfq_items


# ── Matching ────────────────────────────────────────────────


def snapshot_quotation(
    rfq_id: uuid.UUID, buyer_id: uuid.UUID, vq: VendorQuotation
) -> SentQuotation:
    """Copy a price-list entry's terms as they stand right now."""
    return SentQuotation(
        rfq_id=rfq_id,
        buyer_id=buyer_id,
        vendor_id=vq.vendor_id,
        product_id=vq.product_id,
        quotation_id=vq.id,
        quotation_type=vq.quotation_type,
        price_cents=vq.price_cents,
        quantity=vq.quantity,
        payment_terms=vq.payment_terms,
        delivery_time=vq.delivery_time,
        warranty_period=vq.warranty_period,
        country_of_origin=vq.country_of_origin,
        brand=vq.brand,
        product_specifications=vq.product_specifications,
        product_photo=vq.product_photo,
        product_description=vq.product_description,
        opened=False,
        chosen=False,
    )


async def _active_quotations(
    session: AsyncSession, product_ids: set[uuid.UUID]
) -> list[tuple[VendorQuotation, User]]:
    result = await session.execute(
        select(VendorQuotation, User)
        .join(User, User.id == VendorQuotation.vendor_id)
        .where(
            VendorQuotation.product_id.in_(product_ids),
            VendorQuotation.active == True,  # noqa: E712
        )
        .order_by(VendorQuotation.created_at, VendorQuotation.id)
    )
    return [(row[0], row[1]) for row in result.all()]


async def _match_price_lists(
    session: AsyncSession,
    rfq: Rfq,
    rfq_items: list[RfqItem],
    products: dict[uuid.UUID, Product],
    active: list[tuple[VendorQuotation, User]],
) -> int:
    matched = 0
    for item in rfq_items:
        product = products[item.product_id]
        for vq, vendor in active:
            if vq.product_id != item.product_id or not vendor.verified:
                continue
            if rfq.is_broker and vendor.id == rfq.buyer_id:
                continue

            sq = snapshot_quotation(rfq.id, rfq.buyer_id, vq)
            session.add(sq)
            matched += 1

            await notification_service.notify(
                session,
                vendor.id,
                "quotation_sent",
                "Your Quotation Was Sent",
                f"Your quotation for {product.name} was sent to a buyer",
                notification_service.related_rfq(rfq.id),
            )
    return matched


# ── Solicitation ────────────────────────────────────────────


async def _verified_vendors(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User)
        .where(User.role == "vendor", User.verified == True)  # noqa: E712
        .order_by(User.registered_at, User.id)
    )
    return list(result.scalars().all())


async def _solicit_vendors(
    session: AsyncSession,
    rfq: Rfq,
    rfq_items: list[RfqItem],
    products: dict[uuid.UUID, Product],
    already_quoting: dict[uuid.UUID, set[uuid.UUID]],
    background_tasks: Optional[BackgroundTasks],
) -> int:
    """Notify category vendors once per (vendor, product). Returns distinct vendors notified."""
    vendors = await _verified_vendors(session)
    vendor_products: dict[uuid.UUID, list[Product]] = defaultdict(list)
    vendors_by_id = {v.id: v for v in vendors}

    for item in rfq_items:
        product = products[item.product_id]
        category = str(product.category_id)
        for vendor in vendors:
            if category not in (vendor.categories or []):
                continue
            if vendor.id in already_quoting.get(product.id, set()):
                continue
            if not should_notify_vendor(
                vendor, rfq.is_guest, rfq.is_broker, submitter_id=rfq.buyer_id
            ):
                continue
            await notification_service.notify(
                session,
                vendor.id,
                "rfq_needs_quotation",
                "New RFQ Needs Your Quotation",
                f"A buyer is requesting {item.quantity} x {product.name}. "
                "Submit your quotation to compete for this order.",
                notification_service.related_rfq(rfq.id),
            )
            vendor_products[vendor.id].append(product)

    for vendor_id, vendor_product_list in vendor_products.items():
        try:
            notification_service.queue_direct_message(
                background_tasks,
                vendors_by_id[vendor_id],
                whatsapp_service.new_rfq_message(p.name for p in vendor_product_list),
            )
        except Exception as e:
            logger.error("rfq_whatsapp_queue_failed", vendor_id=str(vendor_id), error=str(e))

    return len(vendor_products)


def _record_rfq_sent(session: AsyncSession, rfq: Rfq, item_count: int):
    session.add(
        AnalyticsEvent(
            type="rfq_sent",
            event_metadata={
                "rfqId": str(rfq.id),
                "itemCount": item_count,
                "isGuest": bool(rfq.is_guest),
            },
        )
    )


# ── Submission ──────────────────────────────────────────────


async def submit_rfq(
    session: AsyncSession,
    submitter: User,
    items: list[dict],
    expected_delivery_time: str,
    background_tasks: Optional[BackgroundTasks] = None,
) -> SubmissionResult:
    check_role(submitter, "buyer", "vendor", message="Only buyers or vendors can submit RFQs")
    check_verified(submitter, message="Your account must be verified before submitting RFQs")
    if not expected_delivery_time or not expected_delivery_time.strip():
        raise bad_request("Expected delivery time is required")
    products = await _validate_items(session, items)

    rfq = Rfq(
        buyer_id=submitter.id,
        is_guest=False,
        status="pending",
        is_broker=submitter.role == "vendor",
        expected_delivery_time=expected_delivery_time.strip(),
    )
    session.add(rfq)
    await session.flush()
    rfq_items = _create_rfq_items(session, rfq, items)

    active = await _active_quotations(session, set(products))
    matched = await _match_price_lists(
        session, rfq, rfq_items, products, active
    )

    already_quoting: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
    for vq, _vendor in active:
        already_quoting[vq.product_id].add(vq.vendor_id)
    vendors_notified = await _solicit_vendors(
        session, rfq, rfq_items, products, already_quoting, background_tasks
    )

    if matched > 0:
        rfq.status = "quoted"
    _record_rfq_sent(session, rfq, len(items))
    await session.flush()

    logger.info(
        "rfq_submitted",
        rfq_id=str(rfq.id),
        submitter_id=str(submitter.id),
        is_broker=rfq.is_broker,
        items=len(items),
        matched=matched,
        vendors_notified=vendors_notified,
    )
    return SubmissionResult(rfq.id, matched, vendors_notified)


async def submit_guest_rfq(
    session: AsyncSession,
    items: list[dict],
    guest_name: str,
    guest_email: str,
    guest_phone: str,
    expected_delivery_time: str,
    guest_company_name: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> SubmissionResult:
    """Unauthenticated RFQ. No matching; only guest-accepting vendors are solicited."""
    if not guest_name.strip() or not guest_email.strip() or not guest_phone.strip():
        raise bad_request("Name, email and phone are required")
    if not expected_delivery_time or not expected_delivery_time.strip():
        raise bad_request("Expected delivery time is required")
    products = await _validate_items(session, items)

    rfq = Rfq(
        buyer_id=None,
        is_guest=True,
        guest_name=guest_name.strip(),
        guest_email=guest_email.strip(),
        guest_phone=guest_phone.strip(),
        guest_company_name=guest_company_name,
        status="pending",
        is_broker=False,
        expected_delivery_time=expected_delivery_time.strip(),
    )
    session.add(rfq)
    await session.flush()
    rfq_items = _create_rfq_items(session, rfq, items)

    vendors_notified = await _solicit_vendors(
        session, rfq, rfq_items, products, {}, background_tasks
    )
    _record_rfq_sent(session, rfq, len(items))
    await session.flush()

    logger.info(
        "guest_rfq_submitted",
        rfq_id=str(rfq.id),
        items=len(items),
        vendors_notified=vendors_notified,
    )
    return SubmissionResult(rfq.id, 0, vendors_notified)


# ── Queries ─────────────────────────────────────────────────


async def get_rfq(session: AsyncSession, rfq_id: uuid.UUID, for_update: bool = False) -> Rfq:
    q = select(Rfq).where(Rfq.id == rfq_id)
    if for_update:
        q = q.with_for_update()
    rfq = (await session.execute(q)).scalar_one_or_none()
    if not rfq:
        raise not_found("RFQ not found")
    return rfq


async def load_rfq_items(
    session: AsyncSession, rfq_ids: list[uuid.UUID]
) -> dict[uuid.UUID, list[tuple[RfqItem, Product]]]:
    if not rfq_ids:
        return {}
    result = await session.execute(
        select(RfqItem, Product)
        .join(Product, Product.id == RfqItem.product_id)
        .where(RfqItem.rfq_id.in_(rfq_ids))
        .order_by(RfqItem.id)
    )
    by_rfq: dict[uuid.UUID, list[tuple[RfqItem, Product]]] = defaultdict(list)
    for item, product in result.all():
        by_rfq[item.rfq_id].append((item, product))
    return by_rfq


async def get_my_rfqs(session: AsyncSession, buyer: User) -> list[RfqResponse]:
    result = await session.execute(
        select(Rfq).where(Rfq.buyer_id == buyer.id).order_by(Rfq.created_at.desc())
    )
    rfqs = list(result.scalars().all())
    rfq_ids = [r.id for r in rfqs]
    items = await load_rfq_items(session, rfq_ids)

    counts: dict[uuid.UUID, int] = {}
    if rfq_ids:
        count_result = await session.execute(
            select(SentQuotation.rfq_id, func.count(SentQuotation.id))
            .where(SentQuotation.rfq_id.in_(rfq_ids))
            .group_by(SentQuotation.rfq_id)
        )
        counts = {row[0]: row[1] for row in count_result.all()}

    return [
        rfq_response(
            rfq,
            [rfq_item_response(i, p) for i, p in items.get(rfq.id, [])],
            quotation_count=counts.get(rfq.id, 0),
        )
        for rfq in rfqs
    ]


async def quotations_with_parties(
    session: AsyncSession, *conditions
) -> list[tuple[SentQuotation, Product, User, User, Rfq]]:
    vendor = aliased(User)
    buyer = aliased(User)
    result = await session.execute(
        select(SentQuotation, Product, vendor, buyer, Rfq)
        .join(Product, Product.id == SentQuotation.product_id)
        .join(Rfq, Rfq.id == SentQuotation.rfq_id)
        .join(vendor, vendor.id == SentQuotation.vendor_id)
        .join(buyer, buyer.id == SentQuotation.buyer_id)
        .where(*conditions)
        .order_by(SentQuotation.sent_at.desc(), SentQuotation.id)
    )
    return [tuple(row) for row in result.all()]


async def get_rfq_details(session: AsyncSession, rfq_id: uuid.UUID, caller: User) -> RfqResponse:
    """
    RFQ with items and quotations, scoped to the caller: the owning buyer sees
    every quotation, a vendor only its own, an admin everything.
    """
    rfq = await get_rfq(session, rfq_id)
    conditions = [SentQuotation.rfq_id == rfq.id]
    if caller.role == "admin":
        pass
    elif caller.role == "vendor" and rfq.buyer_id != caller.id:
        if not is_rfq_visible_to_vendor(rfq, caller):
            raise forbidden("Access denied")
        conditions.append(SentQuotation.vendor_id == caller.id)
    elif rfq.buyer_id != caller.id:
        raise forbidden("Access denied")

    items = await load_rfq_items(session, [rfq.id])
    quotations = await quotations_with_parties(session, *conditions)
    return rfq_response(
        rfq,
        [rfq_item_response(i, p) for i, p in items.get(rfq.id, [])],
        quotation_count=len(quotations),
        quotations=[
            sent_quotation_response(sq, product, vendor=vendor, rfq=rfq_row)
            for sq, product, vendor, _buyer, rfq_row in quotations
        ],
    )


async def get_sent_quotation_row(
    session: AsyncSession, sent_quotation_id: uuid.UUID, for_update: bool = False
) -> SentQuotation:
    q = select(SentQuotation).where(SentQuotation.id == sent_quotation_id)
    if for_update:
        q = q.with_for_update()
    sq = (await session.execute(q)).scalar_one_or_none()
    if not sq:
        raise not_found("Quotation not found")
    return sq


async def get_sent_quotation(
    session: AsyncSession, sent_quotation_id: uuid.UUID, caller: User
) -> SentQuotationResponse:
    await get_sent_quotation_row(session, sent_quotation_id)
    rows = await quotations_with_parties(session, SentQuotation.id == sent_quotation_id)
    sq, product, vendor, buyer, rfq = rows[0]
    if caller.role != "admin" and caller.id not in (sq.buyer_id, sq.vendor_id):
        raise forbidden("Access denied")
    return sent_quotation_response(sq, product, vendor=vendor, buyer=buyer, rfq=rfq)


async def mark_quotation_opened(
    session: AsyncSession, sent_quotation_id: uuid.UUID, buyer: User
) -> SentQuotation:
    sq = await get_sent_quotation_row(session, sent_quotation_id)
    if sq.buyer_id != buyer.id:
        raise forbidden("Only the receiving buyer can open this quotation")
    if not sq.opened:
        sq.opened = True
        await session.flush()
    return sq


async def get_my_quotations_sent(session: AsyncSession, vendor: User) -> list[SentQuotationResponse]:
    check_role(vendor, "vendor", message="Only vendors have sent quotations")
    rows = await quotations_with_parties(session, SentQuotation.vendor_id == vendor.id)
    return [
        sent_quotation_response(sq, product, buyer=buyer, rfq=rfq)
        for sq, product, _vendor, buyer, rfq in rows
    ]


async def get_my_quotations_received(
    session: AsyncSession, buyer: User
) -> list[SentQuotationResponse]:
    rows = await quotations_with_parties(session, SentQuotation.buyer_id == buyer.id)
    return [
        sent_quotation_response(sq, product, vendor=vendor, rfq=rfq)
        for sq, product, vendor, _buyer, rfq in rows
    ]


async def get_pending_rfqs(session: AsyncSession, vendor: User) -> list[RfqResponse]:
    """Pending RFQs with at least one item in the vendor's categories, visible to it."""
    if vendor.role != "vendor" or not vendor.categories:
        return []

    result = await session.execute(
        select(Rfq).where(Rfq.status == "pending").order_by(Rfq.created_at.desc())
    )
    rfqs = [r for r in result.scalars().all() if is_rfq_visible_to_vendor(r, vendor)]
    rfq_ids = [r.id for r in rfqs]
    items = await load_rfq_items(session, rfq_ids)

    quoted: set[tuple[uuid.UUID, uuid.UUID]] = set()
    if rfq_ids:
        quoted_result = await session.execute(
            select(SentQuotation.rfq_id, SentQuotation.product_id).where(
                SentQuotation.rfq_id.in_(rfq_ids),
                SentQuotation.vendor_id == vendor.id,
            )
        )
        quoted = {(row[0], row[1]) for row in quoted_result.all()}

    categories = set(vendor.categories)
    pending = []
    for rfq in rfqs:
        relevant = [
            rfq_item_response(item, product, already_quoted=(rfq.id, item.product_id) in quoted)
            for item, product in items.get(rfq.id, [])
            if str(product.category_id) in categories
        ]
        if relevant:
            pending.append(rfq_response(rfq, relevant))
    return pending
