"""
Unit tests for medquote/services/approval_service.py

Tests: submit_for_approval (one request per organization approver),
       respond_to_approval_request (all-approve completion with vendor
       broadcast, terminal rejection, wrong approver, double response).
"""

import pytest
from sqlalchemy import select

from medquote.errors import BAD_REQUEST, FORBIDDEN, ServiceError
from medquote.models.approval import ApprovalRequest
from medquote.models.catalog import Category, Product
from medquote.models.rfq import RfqItem
from medquote.services import approval_service, rfq_service, vendor_quotation_service

HOSPITAL = "St. Mary's Hospital"


async def _organization(make):
    requester = await make.user("buyer", company_name=HOSPITAL, name="Grace Akinyi")
    head = await make.user(
        "buyer",
        company_name=HOSPITAL,
        name="Dr. Otieno",
        organization_role="department_head",
        approval_level=1,
    )
    finance = await make.user(
        "buyer",
        company_name=HOSPITAL,
        name="Peter Mwangi",
        organization_role="finance_head",
        approval_level=2,
    )
    return requester, head, finance


async def _submitted(session, make, item_count: int = 1):
    requester, head, finance = await _organization(make)
    category = await make.category()
    products = [await make.product(category) for _ in range(item_count)]
    rfq = await make.rfq(requester, *[(p, 1) for p in products], approval_status="draft")
    requests = await approval_service.submit_for_approval(session, rfq.id, 750_000, requester)
    by_approver = {r.approver_id: r for r in requests}
    return rfq, requester, head, finance, by_approver


@pytest.mark.asyncio
async def test_submission_creates_one_request_per_approver(session, make):
    rfq, requester, head, finance, requests = await _submitted(session, make)

    assert set(requests) == {head.id, finance.id}
    assert requests[head.id].approver_level == 1
    assert requests[finance.id].approver_level == 2
    assert all(r.status == "pending" for r in requests.values())
    assert rfq.approval_status == "pending_approval"
    assert rfq.requires_approval is True
    assert rfq.estimated_value_cents == 750_000
    assert rfq.submitted_by == requester.id

    [note] = await make.notifications(head, "approval_request")
    assert note.related_kind == "approval_request"
    assert "Grace Akinyi" in note.message
    assert "7,500.00" in note.message


@pytest.mark.asyncio
async def test_submission_without_approvers_fails(session, make):
    buyer = await make.user("buyer", company_name="Lone Clinic")
    rfq = await make.rfq(buyer)

    with pytest.raises(ServiceError) as exc_info:
        await approval_service.submit_for_approval(session, rfq.id, 1_000, buyer)

    assert exc_info.value.code == BAD_REQUEST


@pytest.mark.asyncio
async def test_only_owner_can_submit_for_approval(session, make):
    requester, head, _finance = await _organization(make)
    rfq = await make.rfq(requester)

    with pytest.raises(ServiceError) as exc_info:
        await approval_service.submit_for_approval(session, rfq.id, 1_000, head)

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_single_approval_keeps_rfq_pending(session, make):
    rfq, _requester, head, _finance, requests = await _submitted(session, make)

    await approval_service.respond_to_approval_request(
        session, requests[head.id].id, "approved", head
    )

    assert requests[head.id].status == "approved"
    assert requests[head.id].responded_at is not None
    assert rfq.approval_status == "pending_approval"


@pytest.mark.asyncio
async def test_all_approvals_release_rfq_to_every_verified_vendor(session, make):
    rfq, requester, head, finance, requests = await _submitted(session, make, item_count=2)
    vendor = await make.user("vendor")
    unverified = await make.user("vendor", verified=False)

    await approval_service.respond_to_approval_request(
        session, requests[head.id].id, "approved", head
    )
    await approval_service.respond_to_approval_request(
        session, requests[finance.id].id, "approved", finance, comments="Within budget"
    )

    assert rfq.approval_status == "approved"
    assert rfq.status == "pending"
    [done] = await make.notifications(requester, "approval_update")
    assert done.title == "RFQ Fully Approved!"
    # one announcement per RFQ item
    broadcasts = await make.notifications(vendor, "rfq_received")
    assert len(broadcasts) == 2
    assert all(n.related_id == rfq.id for n in broadcasts)
    assert await make.notifications(unverified) == []


@pytest.mark.asyncio
async def test_one_rejection_is_terminal(session, make):
    rfq, requester, head, finance, requests = await _submitted(session, make)

    await approval_service.respond_to_approval_request(
        session, requests[head.id].id, "rejected", head, comments="Over budget"
    )
    await approval_service.respond_to_approval_request(
        session, requests[finance.id].id, "approved", finance
    )

    assert rfq.approval_status == "rejected"
    [note] = await make.notifications(requester, "approval_update")
    assert note.title == "RFQ Rejected"
    assert note.message == "Your RFQ was rejected by Dr. Otieno. Reason: Over budget"


@pytest.mark.parametrize("rejected", [False, True])
@pytest.mark.asyncio
async def test_vendors_cannot_see_or_quote_on_unapproved_rfq(session, make, rejected):
    rfq, _requester, head, _finance, requests = await _submitted(session, make)
    if rejected:
        await approval_service.respond_to_approval_request(
            session, requests[head.id].id, "rejected", head, comments="Over budget"
        )
    item = (await session.execute(select(RfqItem).where(RfqItem.rfq_id == rfq.id))).scalar_one()
    product = await session.get(Product, item.product_id)
    vendor = await make.vendor(await session.get(Category, product.category_id))

    assert await rfq_service.get_pending_rfqs(session, vendor) == []
    with pytest.raises(ServiceError) as exc_info:
        await vendor_quotation_service.create_quotation(
            session,
            vendor,
            product.id,
            {
                "price_cents": 9_000,
                "quantity": 1,
                "payment_terms": "cash",
                "delivery_time": "3 days",
                "warranty_period": "1 year",
            },
            rfq_id=rfq.id,
        )
    assert exc_info.value.code == BAD_REQUEST
    assert exc_info.value.message == "This RFQ is not open for quotations until it is approved"


@pytest.mark.asyncio
async def test_request_can_be_answered_once(session, make):
    _rfq, _requester, head, _finance, requests = await _submitted(session, make)
    await approval_service.respond_to_approval_request(
        session, requests[head.id].id, "approved", head
    )

    with pytest.raises(ServiceError) as exc_info:
        await approval_service.respond_to_approval_request(
            session, requests[head.id].id, "rejected", head
        )

    assert exc_info.value.code == BAD_REQUEST
    assert requests[head.id].status == "approved"


@pytest.mark.asyncio
async def test_other_approvers_request_is_forbidden(session, make):
    _rfq, _requester, head, finance, requests = await _submitted(session, make)

    with pytest.raises(ServiceError) as exc_info:
        await approval_service.respond_to_approval_request(
            session, requests[finance.id].id, "approved", head
        )

    assert exc_info.value.code == FORBIDDEN


@pytest.mark.asyncio
async def test_unknown_decision_is_rejected(session, make):
    _rfq, _requester, head, _finance, requests = await _submitted(session, make)

    with pytest.raises(ServiceError) as exc_info:
        await approval_service.respond_to_approval_request(
            session, requests[head.id].id, "maybe", head
        )

    assert exc_info.value.code == BAD_REQUEST
    pending = (
        await session.execute(select(ApprovalRequest).where(ApprovalRequest.status == "pending"))
    ).scalars().all()
    assert len(pending) == 2
