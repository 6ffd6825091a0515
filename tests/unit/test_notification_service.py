"""
Unit tests for medquote/services/notification_service.py

Tests: notify (types, related entity pointers), read state scoping,
       queue_direct_message opt-in rules, queue_email rendering,
       send_admin_contact_message, phone number formatting.
"""

import uuid

import pytest
from fastapi import BackgroundTasks

from medquote.errors import NOT_FOUND, ServiceError
from medquote.schemas.notification import RelatedOrder, notification_response
from medquote.services import notification_service
from medquote.services.email_service import send_email
from medquote.services.whatsapp_service import format_phone_number, send_whatsapp_message


@pytest.mark.asyncio
async def test_notify_records_related_entity(session, make):
    buyer = await make.user("buyer")
    order_id = uuid.uuid4()

    await notification_service.notify(
        session,
        buyer.id,
        "order_update",
        "Order Status Updated",
        "Your order has been shipped",
        notification_service.related_order(order_id),
    )

    [note] = await make.notifications(buyer)
    assert (note.related_kind, note.related_id) == ("order", order_id)
    response = notification_response(note)
    assert isinstance(response.related, RelatedOrder)
    assert response.related.id == str(order_id)
    assert response.read is False


@pytest.mark.asyncio
async def test_notification_without_related_entity(session, make):
    admin = await make.user("admin")

    await notification_service.notify(session, admin.id, "rfq_received", "Hello", "World")

    [note] = await make.notifications(admin)
    assert notification_response(note).related is None


@pytest.mark.asyncio
async def test_unknown_type_or_kind_is_rejected(session, make):
    buyer = await make.user("buyer")

    with pytest.raises(ValueError):
        await notification_service.notify(session, buyer.id, "newsletter", "t", "m")
    with pytest.raises(ValueError):
        notification_service.Related("invoice", uuid.uuid4())


@pytest.mark.asyncio
async def test_read_state_is_per_user(session, make):
    buyer = await make.user("buyer")
    other = await make.user("buyer")
    for title in ("one", "two", "three"):
        await notification_service.notify(session, buyer.id, "order_update", title, "m")
    await session.flush()
    first, *_ = await make.notifications(buyer)

    with pytest.raises(ServiceError) as exc_info:
        await notification_service.mark_as_read(session, first.id, other)
    assert exc_info.value.code == NOT_FOUND

    await notification_service.mark_as_read(session, first.id, buyer)
    assert await notification_service.get_unread_count(session, buyer) == 2
    assert len(await notification_service.list_notifications(session, buyer, unread_only=True)) == 2

    assert await notification_service.mark_all_as_read(session, buyer) == 2
    assert await notification_service.get_unread_count(session, buyer) == 0


@pytest.mark.asyncio
async def test_direct_message_requires_opt_in_and_phone(make):
    opted_in = await make.user("buyer", phone="0712 345 678", whatsapp_notifications=True)
    no_phone = await make.user("buyer", whatsapp_notifications=True)
    opted_out = await make.user("buyer", phone="0712 345 678", whatsapp_notifications=False)
    tasks = BackgroundTasks()

    assert notification_service.queue_direct_message(tasks, opted_in, "hi") is True
    assert notification_service.queue_direct_message(tasks, no_phone, "hi") is False
    assert notification_service.queue_direct_message(tasks, opted_out, "hi") is False
    assert notification_service.queue_direct_message(None, opted_in, "hi") is False
    assert notification_service.queue_direct_message(tasks, None, "hi") is False

    [task] = tasks.tasks
    assert task.func is send_whatsapp_message
    assert task.args == ("0712 345 678", "hi")


def test_queue_email_renders_template():
    tasks = BackgroundTasks()

    queued = notification_service.queue_email(
        tasks,
        "guest_quotation_received",
        ["guest@clinic.example.com", ""],
        {
            "guest_name": "Dr. Wanjiru",
            "product_name": "Nebulizer",
            "amount_cents": 450_000,
            "quantity": 2,
            "delivery_time": "5 days",
            "warranty_period": "6 months",
            "payment_terms": "cash",
        },
    )

    assert queued is True
    [task] = tasks.tasks
    assert task.func is send_email
    emails, subject, html = task.args
    assert emails == ["guest@clinic.example.com"]
    assert subject == "[MedQuote] New quotation for Nebulizer"
    assert "KES 4,500.00" in html


def test_queue_email_with_missing_context_is_dropped():
    tasks = BackgroundTasks()

    assert notification_service.queue_email(tasks, "account_approved", ["a@b.example"], {}) is False
    assert notification_service.queue_email(tasks, "no_such_template", ["a@b.example"], {}) is False
    assert tasks.tasks == []


@pytest.mark.asyncio
async def test_contact_message_reaches_every_admin(session, make):
    admins = [await make.user("admin"), await make.user("admin")]
    buyer = await make.user("buyer")

    count = await notification_service.send_admin_contact_message(
        session, "Jane", "jane@example.com", "+254700000001", "Portable X-ray unit"
    )

    assert count == 2
    for admin in admins:
        [note] = await make.notifications(admin)
        assert note.title == "Product Request from Chatbot"
        assert note.message == "Jane (jane@example.com, +254700000001) is looking for: Portable X-ray unit"
    assert await make.notifications(buyer) == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0712 345 678", "+254712345678"),
        ("712345678", "+254712345678"),
        ("+1 415 555 0100", "+14155550100"),
    ],
)
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected
