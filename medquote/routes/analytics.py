import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.middleware.authorization import require_roles
from medquote.models.user import User
from medquote.schemas.analytics import (
    MarketComparison,
    PricingHistoryPoint,
    RecentPerformance,
    SiteAnalytics,
    TrackVisitRequest,
    VendorAdvisory,
    VendorDashboardStats,
    VendorPerformance,
)
from medquote.schemas.common import SuccessResponse
from medquote.services import (
    advisory_service,
    site_analytics_service,
    vendor_analytics_service,
)
from medquote.services.price_analytics_service import get_vendor_pricing_history

router = APIRouter()


# ── Site ────────────────────────────────────────────────────


@router.post("/visits", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def track_visit(body: TrackVisitRequest, db: AsyncSession = Depends(get_db)):
    await site_analytics_service.track_visit(db, body.page)
    return SuccessResponse()


@router.get("/site", response_model=SiteAnalytics)
async def get_site_analytics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await site_analytics_service.get_site_analytics(db, current_user)


# ── Vendor ──────────────────────────────────────────────────


@router.get("/vendor/performance", response_model=VendorPerformance)
async def get_vendor_performance(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vendor_analytics_service.get_vendor_performance(db, current_user)


@router.get("/vendor/market-comparison", response_model=MarketComparison)
async def get_market_comparison(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vendor_analytics_service.get_market_comparison(db, current_user)


@router.get("/vendor/recent", response_model=RecentPerformance)
async def get_recent_performance(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vendor_analytics_service.get_recent_performance(db, current_user)


@router.get("/vendor/summary", response_model=VendorDashboardStats)
async def get_vendor_stats_summary(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await vendor_analytics_service.get_vendor_stats_summary(db, current_user)


@router.get("/vendor/advisory", response_model=VendorAdvisory)
async def get_vendor_advisory(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await advisory_service.get_vendor_advisory(db, current_user)


@router.get("/vendor/pricing-history", response_model=List[PricingHistoryPoint])
async def get_pricing_history(
    product_id: uuid.UUID = Query(...),
    current_user: User = Depends(get_current_user),
    _auth: None = Depends(require_roles("vendor")),
    db: AsyncSession = Depends(get_db),
):
    return await get_vendor_pricing_history(db, current_user.id, product_id)
