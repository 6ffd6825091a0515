import uuid
from typing import Literal, Optional

from pydantic import BaseModel, Field

from medquote.models.approval import ApprovalRequest
from medquote.models.rfq import Rfq
from medquote.models.user import User
from medquote.schemas.common import iso


class SubmitForApprovalRequest(BaseModel):
    rfq_id: uuid.UUID
    # Sign checked by the service so the caller gets BAD_REQUEST, not 422
    estimated_value_cents: int


class ApprovalDecision(BaseModel):
    decision: Literal["approved", "rejected"]
    comments: Optional[str] = Field(None, max_length=2000)


class ApproverSummary(BaseModel):
    id: str
    name: str
    organization_role: str
    approval_level: Optional[int] = None


class ApprovalRequestResponse(BaseModel):
    id: str
    rfq_id: str
    requested_by: str
    approver_id: str
    approver_level: int
    status: str
    comments: Optional[str] = None
    created_at: str
    responded_at: Optional[str] = None
    requester_name: Optional[str] = None
    approver_name: Optional[str] = None
    estimated_value_cents: Optional[int] = None
    rfq_approval_status: Optional[str] = None


def approval_request_response(
    req: ApprovalRequest,
    rfq: Optional[Rfq] = None,
    requester: Optional[User] = None,
    approver: Optional[User] = None,
) -> ApprovalRequestResponse:
    return ApprovalRequestResponse(
        id=str(req.id),
        rfq_id=str(req.rfq_id),
        requested_by=str(req.requested_by),
        approver_id=str(req.approver_id),
        approver_level=req.approver_level or 0,
        status=req.status,
        comments=req.comments,
        created_at=iso(req.created_at) or "",
        responded_at=iso(req.responded_at),
        requester_name=requester.name if requester else None,
        approver_name=approver.name if approver else None,
        estimated_value_cents=rfq.estimated_value_cents if rfq else None,
        rfq_approval_status=rfq.approval_status if rfq else None,
    )


def approver_summary(user: User) -> ApproverSummary:
    return ApproverSummary(
        id=str(user.id),
        name=user.name,
        organization_role=user.organization_role,
        approval_level=user.approval_level,
    )
