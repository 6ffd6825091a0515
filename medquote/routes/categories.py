import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.catalog import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    category_response,
)
from medquote.services import catalog_service

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return [category_response(c) for c in await catalog_service.list_categories(db)]


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    category = await catalog_service.create_category(db, current_user, **body.model_dump())
    return category_response(category)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    category = await catalog_service.update_category(
        db, current_user, category_id, **body.model_dump()
    )
    return category_response(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.delete_category(db, current_user, category_id)
