import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user, get_identity, get_or_create_current_user
from medquote.models.user import User
from medquote.schemas.common import PaginatedResponse, build_pagination
from medquote.schemas.user import (
    CategoryAssignment,
    NotificationPreferencesUpdate,
    ProfileUpdate,
    QuotationPreferenceUpdate,
    RegisterRequest,
    UserResponse,
    user_response,
)
from medquote.services import user_service

logger = structlog.get_logger()
router = APIRouter()


# ── Self-service ────────────────────────────────────────────


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_or_create_current_user)):
    return user_response(current_user)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    identity: dict = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.register_user(
        db,
        identity,
        body.role,
        body.company_name,
        phone=body.phone,
        address=body.address,
        background_tasks=background_tasks,
    )
    return user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(db, current_user, **body.model_dump(exclude_unset=True))
    return user_response(user)


@router.put("/me/quotation-preference", response_model=UserResponse)
async def update_quotation_preference(
    body: QuotationPreferenceUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_quotation_preference(
        db, current_user, body.quotation_preference
    )
    return user_response(user)


@router.put("/me/notification-preferences", response_model=UserResponse)
async def update_notification_preferences(
    body: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_notification_preferences(
        db,
        current_user,
        whatsapp_notifications=body.whatsapp_notifications,
        email_notifications=body.email_notifications,
    )
    return user_response(user)


# ── Admin ───────────────────────────────────────────────────


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[str] = Query(None),
    user_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    users, total = await user_service.list_users(
        db, current_user, role=role, status=user_status, page=page, limit=limit
    )
    return PaginatedResponse(
        data=[user_response(u) for u in users],
        pagination=build_pagination(page, limit, total),
    )


@router.post("/{user_id}/verify", response_model=UserResponse)
async def verify_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return user_response(await user_service.verify_user(db, current_user, user_id))


@router.post("/{user_id}/toggle-verification", response_model=UserResponse)
async def toggle_user_verification(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return user_response(await user_service.toggle_user_verification(db, current_user, user_id))


@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return user_response(
        await user_service.approve_user(db, current_user, user_id, background_tasks)
    )


@router.post("/{user_id}/reject", response_model=UserResponse)
async def reject_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return user_response(await user_service.reject_user(db, current_user, user_id))


@router.put("/{user_id}/categories", response_model=UserResponse)
async def assign_categories(
    user_id: uuid.UUID,
    body: CategoryAssignment,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    vendor = await user_service.assign_categories_to_vendor(
        db, current_user, user_id, body.category_ids
    )
    return user_response(vendor)
