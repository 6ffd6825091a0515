"""Quotations as delivered to buyers, and the buyer's decision on each."""

import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.common import SuccessResponse
from medquote.schemas.order import ChooseQuotationResponse
from medquote.schemas.rfq import DeclineRequest, SentQuotationResponse
from medquote.services import quotation_decision_service, rfq_service

router = APIRouter()


@router.get("/sent", response_model=List[SentQuotationResponse])
async def get_my_quotations_sent(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rfq_service.get_my_quotations_sent(db, current_user)


@router.get("/received", response_model=List[SentQuotationResponse])
async def get_my_quotations_received(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rfq_service.get_my_quotations_received(db, current_user)


@router.get("/{quotation_id}", response_model=SentQuotationResponse)
async def get_sent_quotation(
    quotation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await rfq_service.get_sent_quotation(db, quotation_id, current_user)


@router.post("/{quotation_id}/open", response_model=SuccessResponse)
async def mark_quotation_opened(
    quotation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await rfq_service.mark_quotation_opened(db, quotation_id, current_user)
    return SuccessResponse()


@router.post("/{quotation_id}/choose", response_model=ChooseQuotationResponse)
async def choose_quotation(
    quotation_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept the quotation: completes the RFQ, creates the order, reveals both parties."""
    result = await quotation_decision_service.choose_quotation(
        db, quotation_id, current_user, background_tasks
    )
    return ChooseQuotationResponse(
        order_id=str(result.order.id),
        rfq_id=str(result.order.rfq_id),
        already_chosen=result.already_chosen,
    )


@router.post("/{quotation_id}/decline", response_model=SuccessResponse)
async def decline_quotation(
    quotation_id: uuid.UUID,
    body: DeclineRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await quotation_decision_service.decline_quotation(db, quotation_id, body.reason, current_user)
    return SuccessResponse()
