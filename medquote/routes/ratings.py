import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.rating import (
    CanRateResponse,
    RatingCreate,
    RatingResponse,
    VendorRatingsResponse,
    VendorStatsResponse,
    rating_response,
)
from medquote.services import rating_service

router = APIRouter()


@router.post("", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def submit_rating(
    body: RatingCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rating = await rating_service.submit_rating(db, current_user, **body.model_dump())
    return rating_response(rating, buyer=current_user)


@router.get("/can-rate", response_model=CanRateResponse)
async def can_rate_vendor(
    vendor_id: uuid.UUID = Query(...),
    rfq_id: uuid.UUID = Query(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    eligibility = await rating_service.can_rate_vendor(db, vendor_id, rfq_id, current_user)
    return CanRateResponse(can_rate=eligibility.can_rate, reason=eligibility.reason)


@router.get("/mine", response_model=List[RatingResponse])
async def get_my_ratings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rating_service.get_my_ratings(db, current_user)


@router.get("/vendors/{vendor_id}", response_model=VendorRatingsResponse)
async def get_vendor_ratings(vendor_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await rating_service.get_vendor_ratings(db, vendor_id)


@router.get("/vendors/{vendor_id}/stats", response_model=VendorStatsResponse)
async def get_vendor_stats(vendor_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await rating_service.get_vendor_stats(db, vendor_id)
