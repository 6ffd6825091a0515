import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from medquote.schemas.rfq import ProductSummary


class GroupBuyCreate(BaseModel):
    product_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    target_quantity: int
    deadline: datetime
    minimum_participants: int = 2
    initial_quantity: int
    rfq_id: Optional[uuid.UUID] = None


class GroupBuyJoin(BaseModel):
    quantity: int
    rfq_id: Optional[uuid.UUID] = None


class ParticipantResponse(BaseModel):
    id: str
    hospital_id: str
    hospital_name: Optional[str] = None
    quantity: int
    status: str
    joined_at: str


class GroupBuyResponse(BaseModel):
    id: str
    product_id: str
    title: str
    description: Optional[str] = None
    target_quantity: int
    current_quantity: int
    status: str
    deadline: str
    created_by: str
    minimum_participants: int
    rfq_id: Optional[str] = None
    created_at: str
    product: Optional[ProductSummary] = None
    participant_count: int = 0
    progress: float = 0.0
    days_left: int = 0
    participants: List[ParticipantResponse] = []


class GroupBuyConversionResponse(BaseModel):
    rfq_id: Optional[str] = None
    converted: bool
