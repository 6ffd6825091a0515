import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.order import (
    ChooseQuotationResponse,
    OrderCreate,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
    ProofOfDeliveryUpdate,
)
from medquote.services import order_service, quotation_decision_service

logger = structlog.get_logger()
router = APIRouter()


@router.post("", response_model=ChooseQuotationResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Place an order for a quotation on one of the caller's RFQs."""
    result = await quotation_decision_service.create_order_for_quotation(
        db, body.rfq_id, body.quotation_id, current_user, background_tasks
    )
    return ChooseQuotationResponse(
        order_id=str(result.order.id),
        rfq_id=str(result.order.rfq_id),
        already_chosen=result.already_chosen,
    )


@router.get("/mine", response_model=List[OrderResponse])
async def get_my_orders(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_my_orders(db, current_user)


@router.get("/vendor", response_model=List[OrderResponse])
async def get_vendor_orders(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_vendor_orders(db, current_user)


@router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_order_stats(db, current_user)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_order_details(db, order_id, current_user)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    body: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await order_service.update_order_status(
        db,
        order_id,
        body.status,
        current_user,
        tracking_number=body.tracking_number,
        estimated_delivery_date=body.estimated_delivery_date,
        delivery_notes=body.delivery_notes,
        cancel_reason=body.cancel_reason,
        background_tasks=background_tasks,
    )
    return await order_service.get_order_details(db, order_id, current_user)


@router.put("/{order_id}/proof-of-delivery", response_model=OrderResponse)
async def upload_proof_of_delivery(
    order_id: uuid.UUID,
    body: ProofOfDeliveryUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await order_service.upload_proof_of_delivery(
        db, order_id, body.proof_of_delivery, current_user
    )
    return await order_service.get_order_details(db, order_id, current_user)


@router.post("/{order_id}/confirm-delivery", response_model=OrderResponse)
async def confirm_delivery(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await order_service.confirm_delivery(db, order_id, current_user)
    return await order_service.get_order_details(db, order_id, current_user)
