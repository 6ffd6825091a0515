import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from medquote.models.catalog import Product
from medquote.models.order import Order
from medquote.models.user import User
from medquote.schemas.common import iso
from medquote.schemas.rfq import PartyContact, ProductSummary, party_contact, product_summary


class OrderCreate(BaseModel):
    rfq_id: uuid.UUID
    quotation_id: uuid.UUID


class OrderStatusUpdate(BaseModel):
    status: Literal["confirmed", "processing", "shipped", "delivered", "cancelled"]
    tracking_number: Optional[str] = Field(None, max_length=100)
    estimated_delivery_date: Optional[datetime] = None
    delivery_notes: Optional[str] = None
    cancel_reason: Optional[str] = None


class ProofOfDeliveryUpdate(BaseModel):
    proof_of_delivery: str = Field(..., min_length=1)


class OrderResponse(BaseModel):
    id: str
    rfq_id: str
    quotation_id: str
    buyer_id: str
    vendor_id: str
    product_id: str
    quantity: int
    total_amount_cents: int
    status: str
    order_date: str
    last_updated: str
    tracking_number: Optional[str] = None
    estimated_delivery_date: Optional[str] = None
    actual_delivery_date: Optional[str] = None
    delivery_notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    proof_of_delivery: Optional[str] = None
    product: Optional[ProductSummary] = None
    vendor: Optional[PartyContact] = None
    buyer: Optional[PartyContact] = None


def order_response(
    order: Order,
    product: Optional[Product] = None,
    vendor: Optional[User] = None,
    buyer: Optional[User] = None,
) -> OrderResponse:
    # An order exists only for a chosen quotation, so both parties are revealed
    return OrderResponse(
        id=str(order.id),
        rfq_id=str(order.rfq_id),
        quotation_id=str(order.quotation_id),
        buyer_id=str(order.buyer_id),
        vendor_id=str(order.vendor_id),
        product_id=str(order.product_id),
        quantity=order.quantity,
        total_amount_cents=order.total_amount_cents,
        status=order.status,
        order_date=iso(order.order_date) or "",
        last_updated=iso(order.last_updated) or "",
        tracking_number=order.tracking_number,
        estimated_delivery_date=iso(order.estimated_delivery_date),
        actual_delivery_date=iso(order.actual_delivery_date),
        delivery_notes=order.delivery_notes,
        cancel_reason=order.cancel_reason,
        proof_of_delivery=order.proof_of_delivery,
        product=product_summary(product),
        vendor=party_contact(vendor, revealed=True),
        buyer=party_contact(buyer, revealed=True),
    )


class OrderStatsResponse(BaseModel):
    total_orders: int
    total_value_cents: int
    delivered: int
    in_progress: int
    delivery_rate: float


class ChooseQuotationResponse(BaseModel):
    order_id: str
    rfq_id: str
    already_chosen: bool = False
