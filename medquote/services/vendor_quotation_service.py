"""
Vendor price lists.

A pre-filled entry is a standing offer matched against every future RFQ for
its product. An on-demand entry answers one specific RFQ and is delivered to
that RFQ's buyer immediately.
"""

import uuid
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.errors import bad_request, conflict, not_found
from medquote.models.analytics_event import AnalyticsEvent
from medquote.models.catalog import Product
from medquote.models.rfq import Rfq, RfqItem, SentQuotation
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.schemas.quotation import VendorQuotationResponse, vendor_quotation_response
from medquote.services import notification_service, whatsapp_service
from medquote.services.guards import check_role, check_verified
from medquote.services.rfq_service import get_rfq, snapshot_quotation
from medquote.services.visibility import is_held_for_approval, is_rfq_visible_to_vendor

logger = structlog.get_logger()

PAYMENT_TERMS = ("cash", "credit")
TERM_FIELDS = (
    "price_cents",
    "quantity",
    "payment_terms",
    "delivery_time",
    "warranty_period",
    "country_of_origin",
    "product_specifications",
    "product_photo",
    "product_description",
    "brand",
)


def _validate_terms(terms: dict):
    if terms["price_cents"] <= 0:
        raise bad_request("Price must be greater than zero")
    if terms["quantity"] < 1:
        raise bad_request("Quantity must be at least 1")
    if terms["payment_terms"] not in PAYMENT_TERMS:
        raise bad_request("Payment terms must be cash or credit")


async def _get_owned_quotation(
    session: AsyncSession, quotation_id: uuid.UUID, vendor: User
) -> VendorQuotation:
    vq = await session.get(VendorQuotation, quotation_id)
    if not vq or vq.vendor_id != vendor.id:
        raise not_found("Quotation not found or unauthorized")
    return vq


# ── Price-list CRUD ─────────────────────────────────────────


async def get_my_quotations(session: AsyncSession, vendor: User) -> list[VendorQuotationResponse]:
    if vendor.role != "vendor":
        return []
    result = await session.execute(
        select(VendorQuotation, Product)
        .join(Product, Product.id == VendorQuotation.product_id)
        .where(VendorQuotation.vendor_id == vendor.id)
        .order_by(VendorQuotation.created_at.desc())
    )
    return [vendor_quotation_response(vq, product) for vq, product in result.all()]


async def create_quotation(
    session: AsyncSession,
    vendor: User,
    product_id: uuid.UUID,
    terms: dict,
    rfq_id: Optional[uuid.UUID] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> VendorQuotation:
    check_role(vendor, "vendor", message="Only vendors can create quotations")
    _validate_terms(terms)
    product = await session.get(Product, product_id)
    if not product:
        raise not_found("Product not found")

    rfq = None
    if rfq_id is not None:
        check_verified(vendor, message="Your account must be verified before quoting on RFQs")
        rfq = await _check_quotable(session, rfq_id, product_id, vendor)

    vq = VendorQuotation(
        vendor_id=vendor.id,
        product_id=product_id,
        rfq_id=rfq_id,
        quotation_type="on-demand" if rfq_id else "pre-filled",
        source="manual",
        active=True,
        **{k: terms.get(k) for k in TERM_FIELDS},
    )
    session.add(vq)
    await session.flush()

    if rfq is not None:
        await _deliver_on_demand(session, rfq, vq, product, vendor, background_tasks)

    logger.info(
        "vendor_quotation_created",
        quotation_id=str(vq.id),
        vendor_id=str(vendor.id),
        quotation_type=vq.quotation_type,
    )
    return vq


async def update_quotation(
    session: AsyncSession, vendor: User, quotation_id: uuid.UUID, terms: dict
) -> VendorQuotation:
    """Replace the entry's terms. SentQuotations already delivered keep their snapshot."""
    check_role(vendor, "vendor", message="Only vendors can update quotations")
    vq = await _get_owned_quotation(session, quotation_id, vendor)
    _validate_terms(terms)
    for key in TERM_FIELDS:
        setattr(vq, key, terms.get(key))
    await session.flush()
    logger.info("vendor_quotation_updated", quotation_id=str(vq.id))
    return vq


async def set_quotation_active(
    session: AsyncSession, vendor: User, quotation_id: uuid.UUID, active: bool
) -> VendorQuotation:
    check_role(vendor, "vendor", message="Only vendors can update quotations")
    vq = await _get_owned_quotation(session, quotation_id, vendor)
    vq.active = active
    await session.flush()
    return vq


async def delete_quotation(session: AsyncSession, vendor: User, quotation_id: uuid.UUID):
    check_role(vendor, "vendor", message="Only vendors can delete quotations")
    vq = await _get_owned_quotation(session, quotation_id, vendor)
    await session.delete(vq)
    await session.flush()
    logger.info("vendor_quotation_deleted", quotation_id=str(quotation_id))


async def get_all_quotations(session: AsyncSession, admin: User) -> list[VendorQuotationResponse]:
    check_role(admin, "admin", message="Admin access required")
    result = await session.execute(
        select(VendorQuotation, Product, User)
        .join(Product, Product.id == VendorQuotation.product_id)
        .join(User, User.id == VendorQuotation.vendor_id)
        .order_by(VendorQuotation.created_at.desc())
    )
    return [vendor_quotation_response(vq, product, vendor) for vq, product, vendor in result.all()]


# ── On-demand quoting ───────────────────────────────────────


async def _check_quotable(
    session: AsyncSession, rfq_id: uuid.UUID, product_id: uuid.UUID, vendor: User
) -> Rfq:
    rfq = await get_rfq(session, rfq_id, for_update=True)
    if rfq.status == "completed":
        raise bad_request("This RFQ is already completed")
    if is_held_for_approval(rfq):
        raise bad_request("This RFQ is not open for quotations until it is approved")
    if not is_rfq_visible_to_vendor(rfq, vendor):
        raise bad_request("This RFQ is not open to your quotations")

    item = await session.execute(
        select(RfqItem.id).where(RfqItem.rfq_id == rfq.id, RfqItem.product_id == product_id)
    )
    if item.first() is None:
        raise bad_request("Product is not part of this RFQ")

    existing = await session.execute(
        select(SentQuotation.id).where(
            SentQuotation.rfq_id == rfq.id,
            SentQuotation.vendor_id == vendor.id,
            SentQuotation.product_id == product_id,
        )
    )
    if existing.first() is not None:
        raise conflict("You have already quoted this product on this RFQ")
    return rfq


async def _deliver_on_demand(
    session: AsyncSession,
    rfq: Rfq,
    vq: VendorQuotation,
    product: Product,
    vendor: User,
    background_tasks: Optional[BackgroundTasks],
):
    if rfq.is_guest:
        notification_service.queue_email(
            background_tasks,
            "guest_quotation_received",
            [rfq.guest_email],
            {
                "guest_name": rfq.guest_name,
                "product_name": product.name,
                "amount_cents": vq.price_cents,
                "quantity": vq.quantity,
                "delivery_time": vq.delivery_time,
                "warranty_period": vq.warranty_period,
                "payment_terms": vq.payment_terms,
            },
        )
    else:
        sq = snapshot_quotation(rfq.id, rfq.buyer_id, vq)
        session.add(sq)
        await session.flush()
        await notification_service.notify(
            session,
            rfq.buyer_id,
            "quotation_sent",
            "New Quotation Received",
            f"{vendor.display_name} sent you a quotation for {product.name}",
            notification_service.related_sent_quotation(sq.id),
        )
        buyer = await session.get(User, rfq.buyer_id)
        try:
            notification_service.queue_direct_message(
                background_tasks,
                buyer,
                whatsapp_service.new_quotation_message(
                    rfq.id, vendor.display_name, product.name, vq.price_cents
                ),
            )
        except Exception as e:
            logger.error("quotation_whatsapp_queue_failed", rfq_id=str(rfq.id), error=str(e))

    if rfq.status == "pending":
        rfq.status = "quoted"
    session.add(
        AnalyticsEvent(
            type="quotation_sent",
            event_metadata={
                "rfqId": str(rfq.id),
                "vendorId": str(vendor.id),
                "productId": str(product.id),
            },
        )
    )
    await session.flush()
