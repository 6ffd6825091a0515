import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from medquote.models.rating import Rating
from medquote.models.user import User
from medquote.schemas.common import iso


class RatingCreate(BaseModel):
    vendor_id: uuid.UUID
    rfq_id: uuid.UUID
    # Ranges are checked by the service so the caller gets BAD_REQUEST
    rating: int
    delivery_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    quality_rating: Optional[int] = None
    would_recommend: Optional[bool] = None
    review: Optional[str] = Field(None, max_length=5000)
    order_value_cents: Optional[int] = None


class CanRateResponse(BaseModel):
    can_rate: bool
    reason: Optional[str] = None


class RatingResponse(BaseModel):
    id: str
    buyer_id: str
    vendor_id: str
    rfq_id: str
    rating: int
    delivery_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    quality_rating: Optional[int] = None
    would_recommend: Optional[bool] = None
    review: Optional[str] = None
    order_value_cents: Optional[int] = None
    created_at: str
    buyer_name: Optional[str] = None
    vendor_name: Optional[str] = None


def rating_response(
    rating: Rating, buyer: Optional[User] = None, vendor: Optional[User] = None
) -> RatingResponse:
    return RatingResponse(
        id=str(rating.id),
        buyer_id=str(rating.buyer_id),
        vendor_id=str(rating.vendor_id),
        rfq_id=str(rating.rfq_id),
        rating=rating.rating,
        delivery_rating=rating.delivery_rating,
        communication_rating=rating.communication_rating,
        quality_rating=rating.quality_rating,
        would_recommend=rating.would_recommend,
        review=rating.review,
        order_value_cents=rating.order_value_cents,
        created_at=iso(rating.created_at) or "",
        buyer_name=buyer.display_name if buyer else None,
        vendor_name=vendor.display_name if vendor else None,
    )


class VendorStatsResponse(BaseModel):
    vendor_id: str
    total_ratings: int
    average_rating: float
    average_delivery: Optional[float] = None
    average_communication: Optional[float] = None
    average_quality: Optional[float] = None
    recommendation_rate: Optional[float] = None
    rating_distribution: Dict[int, int]
    trust_score: Optional[float] = None


class VendorRatingsResponse(BaseModel):
    ratings: List[RatingResponse]
    average_rating: float
    total_ratings: int
