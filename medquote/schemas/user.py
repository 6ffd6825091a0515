import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from medquote.models.user import User
from medquote.schemas.common import iso


class RegisterRequest(BaseModel):
    role: Literal["vendor", "buyer"]
    company_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    avatar: Optional[str] = None
    organization_role: Optional[str] = Field(None, max_length=40)
    approval_level: Optional[int] = None
    can_approve_up_to_cents: Optional[int] = None


class QuotationPreferenceUpdate(BaseModel):
    quotation_preference: str


class NotificationPreferencesUpdate(BaseModel):
    whatsapp_notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None


class CategoryAssignment(BaseModel):
    category_ids: List[uuid.UUID]


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    verified: bool
    status: str
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    categories: List[str] = []
    quotation_preference: Optional[str] = None
    trust_score: Optional[float] = None
    average_rating: Optional[float] = None
    total_ratings: int = 0
    organization_role: str = "none"
    approval_level: Optional[int] = None
    can_approve_up_to_cents: Optional[int] = None
    whatsapp_notifications: bool = False
    email_notifications: bool = True
    registered_at: str


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        verified=bool(user.verified),
        status=user.status,
        company_name=user.company_name,
        phone=user.phone,
        address=user.address,
        avatar=user.avatar,
        categories=list(user.categories or []),
        quotation_preference=user.quotation_preference if user.role == "vendor" else None,
        trust_score=user.trust_score,
        average_rating=user.average_rating,
        total_ratings=user.total_ratings or 0,
        organization_role=user.organization_role or "none",
        approval_level=user.approval_level,
        can_approve_up_to_cents=user.can_approve_up_to_cents,
        whatsapp_notifications=bool(user.whatsapp_notifications),
        email_notifications=bool(user.email_notifications),
        registered_at=iso(user.registered_at) or "",
    )


class FileUploadRequest(BaseModel):
    folder: Literal["products", "quotations", "deliveries", "catalogs", "avatars"]
    content_type: str


class FileUploadResponse(BaseModel):
    upload_url: str
    file_key: str
    content_type: str
    expires_in: int


class FileDownloadResponse(BaseModel):
    download_url: str
