import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.analytics import MarketPrice
from medquote.schemas.catalog import (
    BulkProductCreate,
    CatalogScanRequest,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    product_response,
)
from medquote.services import catalog_service
from medquote.services.catalog_scanner import ScanResult, scan_catalog_image
from medquote.services.price_analytics_service import get_product_market_price

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=List[ProductResponse])
async def list_products(
    category_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    rows = await catalog_service.list_products(db, category_id=category_id, search=search)
    return [product_response(p, category_name) for p, category_name in rows]


@router.get("/slug/{slug}", response_model=ProductResponse)
async def get_product_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return product_response(await catalog_service.get_product_by_slug(db, slug))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return product_response(await catalog_service.get_product(db, product_id))


@router.get("/{product_id}/market-price", response_model=Optional[MarketPrice])
async def get_market_price(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Average, median and range of quotes sent for the product over the last 90 days."""
    await catalog_service.get_product(db, product_id)
    return await get_product_market_price(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.create_product(db, current_user, **body.model_dump())
    return product_response(product)


@router.post("/bulk", response_model=List[ProductResponse], status_code=status.HTTP_201_CREATED)
async def bulk_create_products(
    body: BulkProductCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    products = await catalog_service.bulk_create_products(
        db, current_user, [p.model_dump() for p in body.products]
    )
    return [product_response(p) for p in products]


@router.post("/scan", response_model=ScanResult)
async def scan_catalog(
    body: CatalogScanRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Extract product candidates from a catalog page image. Nothing is saved."""
    return await scan_catalog_image(db, body.image_url, current_user, context=body.context)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    body: ProductUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.update_product(
        db, current_user, product_id, **body.model_dump()
    )
    return product_response(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.delete_product(db, current_user, product_id)
