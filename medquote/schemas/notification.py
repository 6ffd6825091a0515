from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from medquote.models.notification import Notification
from medquote.schemas.common import iso


class RelatedRfq(BaseModel):
    kind: Literal["rfq"] = "rfq"
    id: str


class RelatedOrder(BaseModel):
    kind: Literal["order"] = "order"
    id: str


class RelatedSentQuotation(BaseModel):
    kind: Literal["sent_quotation"] = "sent_quotation"
    id: str


class RelatedApprovalRequest(BaseModel):
    kind: Literal["approval_request"] = "approval_request"
    id: str


class RelatedGroupBuy(BaseModel):
    kind: Literal["group_buy"] = "group_buy"
    id: str


RelatedEntity = Annotated[
    Union[RelatedRfq, RelatedOrder, RelatedSentQuotation, RelatedApprovalRequest, RelatedGroupBuy],
    Field(discriminator="kind"),
]

_RELATED_MODELS = {
    "rfq": RelatedRfq,
    "order": RelatedOrder,
    "sent_quotation": RelatedSentQuotation,
    "approval_request": RelatedApprovalRequest,
    "group_buy": RelatedGroupBuy,
}


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    read: bool
    related: Optional[RelatedEntity] = None
    created_at: str


def notification_response(n: Notification) -> NotificationResponse:
    related = None
    if n.related_kind and n.related_id:
        related = _RELATED_MODELS[n.related_kind](id=str(n.related_id))
    return NotificationResponse(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        read=bool(n.read),
        related=related,
        created_at=iso(n.created_at) or "",
    )


class NotificationListResponse(BaseModel):
    data: List[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class ContactAdminRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=1, max_length=30)
    product_request: str = Field(..., min_length=1, max_length=2000)
