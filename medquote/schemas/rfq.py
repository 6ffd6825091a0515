import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from medquote.models.catalog import Product
from medquote.models.rfq import Rfq, RfqItem, SentQuotation
from medquote.models.user import User
from medquote.schemas.common import iso


class RfqItemCreate(BaseModel):
    product_id: uuid.UUID
    # Range checked by the service so the caller gets BAD_REQUEST, not 422
    quantity: int


class RfqCreate(BaseModel):
    items: List[RfqItemCreate]
    expected_delivery_time: str = Field(..., max_length=100)


class GuestRfqCreate(RfqCreate):
    guest_name: str = Field(..., max_length=200)
    guest_email: str = Field(..., max_length=255)
    guest_phone: str = Field(..., max_length=30)
    guest_company_name: Optional[str] = Field(None, max_length=200)


class RfqSubmitResponse(BaseModel):
    rfq_id: str
    matched_count: int
    vendors_notified: int


class DeclineRequest(BaseModel):
    reason: str = Field(..., max_length=1000)


class PartyContact(BaseModel):
    """
    The other side of a deal. Identity and contact fields stay empty until
    the quotation linking the two parties has been chosen.
    """

    id: str
    revealed: bool = False
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    average_rating: Optional[float] = None
    total_ratings: int = 0
    trust_score: Optional[float] = None


def party_contact(user: Optional[User], revealed: bool) -> Optional[PartyContact]:
    """Single serializer for counterparty identity on every read path."""
    if user is None:
        return None
    contact = PartyContact(
        id=str(user.id),
        revealed=revealed,
        average_rating=user.average_rating,
        total_ratings=user.total_ratings or 0,
        trust_score=user.trust_score,
    )
    if revealed:
        contact.name = user.name
        contact.company_name = user.company_name
        contact.email = user.email
        contact.phone = user.phone
    return contact


class ProductSummary(BaseModel):
    id: str
    name: str
    slug: str
    category_id: str
    image: Optional[str] = None


def product_summary(product: Optional[Product]) -> Optional[ProductSummary]:
    if product is None:
        return None
    return ProductSummary(
        id=str(product.id),
        name=product.name,
        slug=product.slug,
        category_id=str(product.category_id),
        image=product.image,
    )


class RfqItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    product: Optional[ProductSummary] = None
    already_quoted: Optional[bool] = None


def rfq_item_response(
    item: RfqItem, product: Optional[Product], already_quoted: Optional[bool] = None
) -> RfqItemResponse:
    return RfqItemResponse(
        id=str(item.id),
        product_id=str(item.product_id),
        quantity=item.quantity,
        product=product_summary(product),
        already_quoted=already_quoted,
    )


class SentQuotationResponse(BaseModel):
    id: str
    rfq_id: str
    product_id: str
    quotation_id: str
    quotation_type: str
    price_cents: int
    quantity: int
    total_cents: int
    payment_terms: str
    delivery_time: str
    warranty_period: str
    country_of_origin: Optional[str] = None
    brand: Optional[str] = None
    product_specifications: Optional[str] = None
    product_photo: Optional[str] = None
    product_description: Optional[str] = None
    opened: bool
    chosen: bool
    sent_at: str
    product: Optional[ProductSummary] = None
    vendor: Optional[PartyContact] = None
    buyer: Optional[PartyContact] = None
    rfq_status: Optional[str] = None


def sent_quotation_response(
    sq: SentQuotation,
    product: Optional[Product] = None,
    vendor: Optional[User] = None,
    buyer: Optional[User] = None,
    rfq: Optional[Rfq] = None,
) -> SentQuotationResponse:
    return SentQuotationResponse(
        id=str(sq.id),
        rfq_id=str(sq.rfq_id),
        product_id=str(sq.product_id),
        quotation_id=str(sq.quotation_id),
        quotation_type=sq.quotation_type,
        price_cents=sq.price_cents,
        quantity=sq.quantity,
        total_cents=sq.price_cents * sq.quantity,
        payment_terms=sq.payment_terms,
        delivery_time=sq.delivery_time,
        warranty_period=sq.warranty_period,
        country_of_origin=sq.country_of_origin,
        brand=sq.brand,
        product_specifications=sq.product_specifications,
        product_photo=sq.product_photo,
        product_description=sq.product_description,
        opened=bool(sq.opened),
        chosen=bool(sq.chosen),
        sent_at=iso(sq.sent_at) or "",
        product=product_summary(product),
        vendor=party_contact(vendor, revealed=bool(sq.chosen)),
        buyer=party_contact(buyer, revealed=bool(sq.chosen)),
        rfq_status=rfq.status if rfq else None,
    )


class RfqResponse(BaseModel):
    id: str
    status: str
    is_guest: bool
    is_broker: bool
    expected_delivery_time: str
    approval_status: Optional[str] = None
    requires_approval: bool = False
    estimated_value_cents: Optional[int] = None
    submitted_at: Optional[str] = None
    created_at: str
    items: List[RfqItemResponse] = []
    quotation_count: int = 0
    quotations: List[SentQuotationResponse] = []


def rfq_response(
    rfq: Rfq,
    items: List[RfqItemResponse],
    quotation_count: int = 0,
    quotations: Optional[List[SentQuotationResponse]] = None,
) -> RfqResponse:
    return RfqResponse(
        id=str(rfq.id),
        status=rfq.status,
        is_guest=bool(rfq.is_guest),
        is_broker=bool(rfq.is_broker),
        expected_delivery_time=rfq.expected_delivery_time,
        approval_status=rfq.approval_status,
        requires_approval=bool(rfq.requires_approval),
        estimated_value_cents=rfq.estimated_value_cents,
        submitted_at=iso(rfq.submitted_at),
        created_at=iso(rfq.created_at) or "",
        items=items,
        quotation_count=quotation_count,
        quotations=quotations or [],
    )
