import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.catalog import Product
from medquote.models.user import User
from medquote.schemas.quotation import (
    VendorQuotationCreate,
    VendorQuotationListResponse,
    VendorQuotationResponse,
    VendorQuotationUpdate,
    vendor_quotation_response,
)
from medquote.services import vendor_quotation_service
from medquote.services.vendor_quotation_service import TERM_FIELDS

logger = structlog.get_logger()
router = APIRouter()


class ActiveToggle(BaseModel):
    active: bool


@router.get("/mine", response_model=VendorQuotationListResponse)
async def get_my_quotations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return VendorQuotationListResponse(
        data=await vendor_quotation_service.get_my_quotations(db, current_user)
    )


@router.get("", response_model=VendorQuotationListResponse)
async def get_all_quotations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return VendorQuotationListResponse(
        data=await vendor_quotation_service.get_all_quotations(db, current_user)
    )


@router.post("", response_model=VendorQuotationResponse, status_code=status.HTTP_201_CREATED)
async def create_quotation(
    body: VendorQuotationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a price-list entry, or quote on a specific RFQ when rfq_id is given.

    An on-demand quote is delivered to the buyer straight away.
    """
    vq = await vendor_quotation_service.create_quotation(
        db,
        current_user,
        body.product_id,
        body.model_dump(include=set(TERM_FIELDS)),
        rfq_id=body.rfq_id,
        background_tasks=background_tasks,
    )
    return vendor_quotation_response(vq, await db.get(Product, vq.product_id), current_user)


@router.put("/{quotation_id}", response_model=VendorQuotationResponse)
async def update_quotation(
    quotation_id: uuid.UUID,
    body: VendorQuotationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vq = await vendor_quotation_service.update_quotation(
        db, current_user, quotation_id, body.model_dump(include=set(TERM_FIELDS))
    )
    return vendor_quotation_response(vq, await db.get(Product, vq.product_id), current_user)


@router.patch("/{quotation_id}/active", response_model=VendorQuotationResponse)
async def set_quotation_active(
    quotation_id: uuid.UUID,
    body: ActiveToggle,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vq = await vendor_quotation_service.set_quotation_active(
        db, current_user, quotation_id, body.active
    )
    return vendor_quotation_response(vq, await db.get(Product, vq.product_id), current_user)


@router.delete("/{quotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quotation(
    quotation_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await vendor_quotation_service.delete_quotation(db, current_user, quotation_id)
