import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from medquote.models.catalog import Product
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.schemas.common import iso
from medquote.schemas.rfq import ProductSummary, product_summary


class VendorQuotationBase(BaseModel):
    price_cents: int
    quantity: int
    payment_terms: Literal["cash", "credit"]
    delivery_time: str = Field(..., min_length=1, max_length=100)
    warranty_period: str = Field(..., min_length=1, max_length=100)
    country_of_origin: Optional[str] = Field(None, max_length=100)
    product_specifications: Optional[str] = None
    product_photo: Optional[str] = None
    product_description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=100)


class VendorQuotationCreate(VendorQuotationBase):
    product_id: uuid.UUID
    rfq_id: Optional[uuid.UUID] = None


class VendorQuotationUpdate(VendorQuotationBase):
    pass


class VendorSummary(BaseModel):
    id: str
    name: str
    email: str
    company_name: Optional[str] = None
    average_rating: Optional[float] = None
    total_ratings: int = 0


class VendorQuotationResponse(BaseModel):
    id: str
    vendor_id: str
    product_id: str
    rfq_id: Optional[str] = None
    quotation_type: str
    source: str
    price_cents: int
    quantity: int
    payment_terms: str
    delivery_time: str
    warranty_period: str
    country_of_origin: Optional[str] = None
    product_specifications: Optional[str] = None
    product_photo: Optional[str] = None
    product_description: Optional[str] = None
    brand: Optional[str] = None
    active: bool
    created_at: str
    updated_at: str
    product: Optional[ProductSummary] = None
    vendor: Optional[VendorSummary] = None


def vendor_quotation_response(
    vq: VendorQuotation,
    product: Optional[Product] = None,
    vendor: Optional[User] = None,
) -> VendorQuotationResponse:
    return VendorQuotationResponse(
        id=str(vq.id),
        vendor_id=str(vq.vendor_id),
        product_id=str(vq.product_id),
        rfq_id=str(vq.rfq_id) if vq.rfq_id else None,
        quotation_type=vq.quotation_type,
        source=vq.source,
        price_cents=vq.price_cents,
        quantity=vq.quantity,
        payment_terms=vq.payment_terms,
        delivery_time=vq.delivery_time,
        warranty_period=vq.warranty_period,
        country_of_origin=vq.country_of_origin,
        product_specifications=vq.product_specifications,
        product_photo=vq.product_photo,
        product_description=vq.product_description,
        brand=vq.brand,
        active=bool(vq.active),
        created_at=iso(vq.created_at) or "",
        updated_at=iso(vq.updated_at) or "",
        product=product_summary(product),
        vendor=(
            VendorSummary(
                id=str(vendor.id),
                name=vendor.name,
                email=vendor.email,
                company_name=vendor.company_name,
                average_rating=vendor.average_rating,
                total_ratings=vendor.total_ratings or 0,
            )
            if vendor
            else None
        ),
    )


class VendorQuotationListResponse(BaseModel):
    data: List[VendorQuotationResponse]
