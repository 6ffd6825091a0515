import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user, get_or_create_current_user
from medquote.models.user import User
from medquote.schemas.analytics import RfqPriceAnalytics
from medquote.schemas.rfq import (
    GuestRfqCreate,
    RfqCreate,
    RfqResponse,
    RfqSubmitResponse,
)
from medquote.services import rfq_service
from medquote.services.price_analytics_service import get_rfq_price_analytics

logger = structlog.get_logger()
router = APIRouter()


def _submit_response(result: rfq_service.SubmissionResult) -> RfqSubmitResponse:
    return RfqSubmitResponse(
        rfq_id=str(result.rfq_id),
        matched_count=result.matched_count,
        vendors_notified=result.vendors_notified,
    )


@router.post("", response_model=RfqSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_rfq(
    body: RfqCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_or_create_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit an RFQ. Matching price-list entries are sent to the buyer at once;
    vendors without one are asked to quote.
    """
    result = await rfq_service.submit_rfq(
        db,
        current_user,
        [item.model_dump() for item in body.items],
        body.expected_delivery_time,
        background_tasks,
    )
    return _submit_response(result)


@router.post("/guest", response_model=RfqSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_guest_rfq(
    body: GuestRfqCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    result = await rfq_service.submit_guest_rfq(
        db,
        [item.model_dump() for item in body.items],
        body.guest_name,
        body.guest_email,
        body.guest_phone,
        body.expected_delivery_time,
        guest_company_name=body.guest_company_name,
        background_tasks=background_tasks,
    )
    return _submit_response(result)


@router.get("/mine", response_model=List[RfqResponse])
async def get_my_rfqs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rfq_service.get_my_rfqs(db, current_user)


@router.get("/pending", response_model=List[RfqResponse])
async def get_pending_rfqs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open RFQs this vendor may quote on, limited to its categories."""
    return await rfq_service.get_pending_rfqs(db, current_user)


@router.get("/{rfq_id}", response_model=RfqResponse)
async def get_rfq_details(
    rfq_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rfq_service.get_rfq_details(db, rfq_id, current_user)


@router.get("/{rfq_id}/price-analytics", response_model=Optional[RfqPriceAnalytics])
async def get_price_analytics(
    rfq_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_rfq_price_analytics(db, rfq_id, current_user)
