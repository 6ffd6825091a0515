import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.common import SuccessResponse
from medquote.schemas.group_buy import (
    GroupBuyConversionResponse,
    GroupBuyCreate,
    GroupBuyJoin,
    GroupBuyResponse,
)
from medquote.services import group_buy_service

router = APIRouter()


@router.get("", response_model=List[GroupBuyResponse])
async def get_active_group_buys(
    product_id: Optional[uuid.UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await group_buy_service.get_active_group_buys(db, product_id=product_id)


@router.get("/mine", response_model=List[GroupBuyResponse])
async def get_my_group_buys(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await group_buy_service.get_my_group_buys(db, current_user)


@router.get("/{group_buy_id}", response_model=GroupBuyResponse)
async def get_group_buy(
    group_buy_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await group_buy_service.get_group_buy_details(db, group_buy_id)


@router.post("", response_model=GroupBuyResponse, status_code=status.HTTP_201_CREATED)
async def create_group_buy(
    body: GroupBuyCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    group_buy = await group_buy_service.create_group_buy(
        db,
        current_user,
        body.product_id,
        body.title,
        body.target_quantity,
        body.deadline,
        body.initial_quantity,
        minimum_participants=body.minimum_participants,
        description=body.description,
        rfq_id=body.rfq_id,
        background_tasks=background_tasks,
    )
    return await group_buy_service.get_group_buy_details(db, group_buy.id)


@router.post("/{group_buy_id}/join", response_model=GroupBuyResponse)
async def join_group_buy(
    group_buy_id: uuid.UUID,
    body: GroupBuyJoin,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Join with a quantity. Reaching the target converts the group buy into an RFQ."""
    await group_buy_service.join_group_buy(
        db, current_user, group_buy_id, body.quantity, body.rfq_id, background_tasks
    )
    return await group_buy_service.get_group_buy_details(db, group_buy_id)


@router.post("/{group_buy_id}/withdraw", response_model=SuccessResponse)
async def withdraw_from_group_buy(
    group_buy_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await group_buy_service.withdraw_from_group_buy(db, current_user, group_buy_id)
    return SuccessResponse()


@router.post("/{group_buy_id}/convert", response_model=GroupBuyConversionResponse)
async def check_and_convert(
    group_buy_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq_id = await group_buy_service.check_and_convert_group_buy(
        db, group_buy_id, background_tasks
    )
    return GroupBuyConversionResponse(
        rfq_id=str(rfq_id) if rfq_id else None, converted=rfq_id is not None
    )
