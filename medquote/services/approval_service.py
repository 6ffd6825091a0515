"""
Approval workflow: draft → pending_approval → approved | rejected.

Every approver in the submitter's organization gets its own request. The RFQ
is approved only once all of them have approved; a single rejection is
terminal. Responses on one RFQ are serialized by locking the RFQ row before
the sibling requests are re-read.
"""

import uuid
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.config import settings
from medquote.database import utcnow
from medquote.errors import bad_request, forbidden, not_found
from medquote.models.approval import ApprovalRequest
from medquote.models.rfq import Rfq, RfqItem
from medquote.models.user import User
from medquote.services import notification_service, whatsapp_service
from medquote.services.guards import check_owner
from medquote.services.rfq_service import get_rfq

logger = structlog.get_logger()

DECISIONS = ("approved", "rejected")


async def get_organization_approvers(session: AsyncSession, user: User) -> list[User]:
    if not user.company_name:
        return []
    result = await session.execute(
        select(User).where(
            User.company_name == user.company_name,
            User.organization_role.is_not(None),
            User.organization_role != "none",
        )
    )
    # Unset levels sort first, as level 0
    return sorted(result.scalars().all(), key=lambda u: (u.approval_level or 0, str(u.id)))


async def submit_for_approval(
    session: AsyncSession,
    rfq_id: uuid.UUID,
    estimated_value_cents: int,
    user: User,
    background_tasks: Optional[BackgroundTasks] = None,
) -> list[ApprovalRequest]:
    if estimated_value_cents < 0:
        raise bad_request("Estimated value cannot be negative")
    rfq = await get_rfq(session, rfq_id, for_update=True)
    check_owner(rfq.buyer_id, user, "Only the RFQ owner can submit it for approval")
    if rfq.approval_status in ("pending_approval", "approved", "rejected"):
        raise bad_request(f"RFQ approval is already {rfq.approval_status}")

    approvers = await get_organization_approvers(session, user)
    if not approvers:
        raise bad_request("No approvers are configured for your organization")

    amount = f"{settings.CURRENCY} {whatsapp_service.format_amount(estimated_value_cents)}"
    requests = []
    for approver in approvers:
        request = ApprovalRequest(
            rfq_id=rfq.id,
            requested_by=user.id,
            approver_id=approver.id,
            approver_level=approver.approval_level or 0,
            status="pending",
        )
        session.add(request)
        await session.flush()
        requests.append(request)

        await notification_service.notify(
            session,
            approver.id,
            "approval_request",
            "New Approval Request",
            f"{user.name} submitted an RFQ for approval (Est. {amount})",
            notification_service.related_approval_request(request.id),
        )
        try:
            notification_service.queue_direct_message(
                background_tasks,
                approver,
                whatsapp_service.approval_request_message(user.name, estimated_value_cents),
            )
        except Exception as e:
            logger.error("approval_whatsapp_queue_failed", approver_id=str(approver.id), error=str(e))

    rfq.approval_status = "pending_approval"
    rfq.requires_approval = True
    rfq.estimated_value_cents = estimated_value_cents
    rfq.submitted_by = user.id
    rfq.submitted_at = utcnow()
    await session.flush()

    logger.info(
        "rfq_submitted_for_approval",
        rfq_id=str(rfq.id),
        approvers=len(approvers),
        estimated_value_cents=estimated_value_cents,
    )
    return requests


async def respond_to_approval_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    decision: str,
    user: User,
    comments: Optional[str] = None,
) -> ApprovalRequest:
    if decision not in DECISIONS:
        raise bad_request("Decision must be approved or rejected")

    request = await session.get(ApprovalRequest, request_id)
    if not request:
        raise not_found("Approval request not found")
    if request.approver_id != user.id:
        raise forbidden("You are not authorized to respond to this request")

    # Lock the RFQ first, then re-read the request under the lock
    rfq = await get_rfq(session, request.rfq_id, for_update=True)
    await session.refresh(request)
    if request.status != "pending":
        raise bad_request(f"This request was already {request.status}")

    request.status = decision
    request.comments = comments
    request.responded_at = utcnow()
    await session.flush()

    if decision == "rejected":
        rfq.approval_status = "rejected"
        reason = f" Reason: {comments}" if comments else ""
        await notification_service.notify(
            session,
            request.requested_by,
            "approval_update",
            "RFQ Rejected",
            f"Your RFQ was rejected by {user.name}.{reason}",
            notification_service.related_rfq(rfq.id),
        )
    elif rfq.approval_status != "rejected":
        await _complete_if_fully_approved(session, rfq, request.requested_by)

    await session.flush()
    logger.info(
        "approval_request_answered",
        request_id=str(request.id),
        rfq_id=str(rfq.id),
        decision=decision,
        approval_status=rfq.approval_status,
    )
    return request


async def _complete_if_fully_approved(session: AsyncSession, rfq: Rfq, requester_id: uuid.UUID):
    result = await session.execute(
        select(ApprovalRequest.status).where(ApprovalRequest.rfq_id == rfq.id)
    )
    statuses = [row[0] for row in result.all()]
    if not statuses or any(s != "approved" for s in statuses):
        return

    rfq.approval_status = "approved"
    rfq.status = "pending"
    await notification_service.notify(
        session,
        requester_id,
        "approval_update",
        "RFQ Fully Approved!",
        "Your RFQ has been approved by all approvers and sent to vendors.",
        notification_service.related_rfq(rfq.id),
    )

    # Every verified vendor, once per item, regardless of category assignment
    items = await session.execute(select(RfqItem.id).where(RfqItem.rfq_id == rfq.id))
    vendors = await session.execute(
        select(User.id).where(User.role == "vendor", User.verified == True)  # noqa: E712
    )
    vendor_ids = [row[0] for row in vendors.all()]
    item_count = len(items.all())
    for _ in range(item_count):
        for vendor_id in vendor_ids:
            await notification_service.notify(
                session,
                vendor_id,
                "rfq_received",
                "New RFQ Available",
                "A new approved RFQ is available for quotation.",
                notification_service.related_rfq(rfq.id),
            )
    logger.info(
        "rfq_fully_approved",
        rfq_id=str(rfq.id),
        vendors=len(vendor_ids),
        items=item_count,
    )


# ── Queries ─────────────────────────────────────────────────


async def get_my_approval_requests(
    session: AsyncSession, user: User
) -> list[tuple[ApprovalRequest, Rfq, User]]:
    result = await session.execute(
        select(ApprovalRequest, Rfq, User)
        .join(Rfq, Rfq.id == ApprovalRequest.rfq_id)
        .join(User, User.id == ApprovalRequest.requested_by)
        .where(ApprovalRequest.approver_id == user.id)
        .order_by(ApprovalRequest.created_at.desc())
    )
    return [tuple(row) for row in result.all()]


async def get_approval_history(
    session: AsyncSession, rfq_id: uuid.UUID, user: User
) -> list[tuple[ApprovalRequest, User]]:
    """Requests for one RFQ, oldest first. Visible to the owner, its approvers and admins."""
    rfq = await get_rfq(session, rfq_id)
    result = await session.execute(
        select(ApprovalRequest, User)
        .join(User, User.id == ApprovalRequest.approver_id)
        .where(ApprovalRequest.rfq_id == rfq.id)
        .order_by(ApprovalRequest.created_at, ApprovalRequest.approver_level)
    )
    rows = [tuple(row) for row in result.all()]
    approver_ids = {r.approver_id for r, _ in rows}
    if user.role != "admin" and user.id != rfq.buyer_id and user.id not in approver_ids:
        raise forbidden("Access denied")
    return rows
