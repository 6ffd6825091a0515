import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import get_db
from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.schemas.approval import (
    ApprovalDecision,
    ApprovalRequestResponse,
    ApproverSummary,
    SubmitForApprovalRequest,
    approval_request_response,
    approver_summary,
)
from medquote.services import approval_service

logger = structlog.get_logger()
router = APIRouter()


@router.get("/approvers", response_model=List[ApproverSummary])
async def list_approvers(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The approval chain that a submission by the caller would go through."""
    approvers = await approval_service.get_organization_approvers(db, current_user)
    return [approver_summary(a) for a in approvers]


@router.post(
    "", response_model=List[ApprovalRequestResponse], status_code=status.HTTP_201_CREATED
)
async def submit_for_approval(
    body: SubmitForApprovalRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requests = await approval_service.submit_for_approval(
        db, body.rfq_id, body.estimated_value_cents, current_user, background_tasks
    )
    return [approval_request_response(r, requester=current_user) for r in requests]


@router.post("/{request_id}/respond", response_model=ApprovalRequestResponse)
async def respond_to_approval_request(
    request_id: uuid.UUID,
    body: ApprovalDecision,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    req = await approval_service.respond_to_approval_request(
        db, request_id, body.decision, current_user, comments=body.comments
    )
    return approval_request_response(req, approver=current_user)


@router.get("/mine", response_model=List[ApprovalRequestResponse])
async def get_my_approval_requests(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await approval_service.get_my_approval_requests(db, current_user)
    return [
        approval_request_response(req, rfq=rfq, requester=requester, approver=current_user)
        for req, rfq, requester in rows
    ]


@router.get("/rfq/{rfq_id}", response_model=List[ApprovalRequestResponse])
async def get_approval_history(
    rfq_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await approval_service.get_approval_history(db, rfq_id, current_user)
    return [approval_request_response(req, approver=approver) for req, approver in rows]
