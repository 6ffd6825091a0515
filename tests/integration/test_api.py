"""
HTTP-level tests against the FastAPI app.

The app's get_db dependency is pointed at the in-memory test engine; the
lifespan hook is not run, so no PostgreSQL connection is attempted.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medquote.database import get_db
from medquote.main import app
from medquote.models.user import User


@pytest_asyncio.fixture
async def client(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_test_db():
        async with factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["db"] == "ok"
    assert body["checks"]["storage"] == "not_configured"


@pytest.mark.asyncio
async def test_missing_token_is_unauthenticated(client):
    response = await client.get("/api/v1/rfqs/mine")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_malformed_body_is_validation_error(client, session, make, headers_for):
    buyer = await make.user("buyer")
    await session.commit()

    response = await client.post(
        "/api/v1/rfqs", json={"items": "not-a-list"}, headers=headers_for(buyer)
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_zero_quantity_is_bad_request(client, session, make, headers_for):
    buyer = await make.user("buyer")
    product = await make.product(await make.category())
    await session.commit()

    response = await client.post(
        "/api/v1/rfqs",
        json={
            "items": [{"product_id": str(product.id), "quantity": 0}],
            "expected_delivery_time": "1 week",
        },
        headers=headers_for(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_rfq_to_delivery_flow(client, session, make, headers_for):
    category = await make.category()
    product = await make.product(category, "Defibrillator")
    buyer = await make.user("buyer", phone="+254700000002")
    vendor = await make.vendor(category, company_name="Afya Supplies", phone="+254700000003")
    await make.price_list(vendor, product, price_cents=350_000, quantity=2)
    await session.commit()
    buyer_headers = headers_for(buyer)

    submitted = await client.post(
        "/api/v1/rfqs",
        json={
            "items": [{"product_id": str(product.id), "quantity": 2}],
            "expected_delivery_time": "10 days",
        },
        headers=buyer_headers,
    )
    assert submitted.status_code == 201
    assert submitted.json()["matched_count"] == 1

    received = await client.get("/api/v1/quotations/received", headers=buyer_headers)
    [quote] = received.json()
    assert quote["total_cents"] == 700_000
    assert quote["vendor"]["revealed"] is False
    assert quote["vendor"]["phone"] is None

    chosen = await client.post(f"/api/v1/quotations/{quote['id']}/choose", headers=buyer_headers)
    assert chosen.status_code == 200
    order_id = chosen.json()["order_id"]
    assert chosen.json()["already_chosen"] is False

    revealed = await client.get(f"/api/v1/quotations/{quote['id']}", headers=buyer_headers)
    assert revealed.json()["vendor"]["revealed"] is True
    assert revealed.json()["vendor"]["phone"] == "+254700000003"

    shipped = await client.patch(
        f"/api/v1/orders/{order_id}/status",
        json={"status": "shipped", "tracking_number": "TRK-001"},
        headers=headers_for(vendor),
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"
    assert shipped.json()["tracking_number"] == "TRK-001"
    assert shipped.json()["total_amount_cents"] == 700_000
    assert shipped.json()["quantity"] == 2

    forbidden = await client.patch(
        f"/api/v1/orders/{order_id}/status",
        json={"status": "delivered"},
        headers=buyer_headers,
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_guest_rfq_needs_no_token(client, session, make):
    product = await make.product(await make.category())
    await session.commit()

    response = await client.post(
        "/api/v1/rfqs/guest",
        json={
            "items": [{"product_id": str(product.id), "quantity": 3}],
            "expected_delivery_time": "ASAP",
            "guest_name": "Dr. Achieng",
            "guest_email": "achieng@clinic.example.com",
            "guest_phone": "0722000000",
        },
    )

    assert response.status_code == 201
    assert response.json()["matched_count"] == 0


@pytest.mark.asyncio
async def test_first_contact_provisions_unverified_buyer(client, session, make, headers_for):
    stranger = User(auth_id="auth|newcomer01", email="newcomer@example.com", name="New Comer")

    response = await client.get("/api/v1/users/me", headers=headers_for(stranger))

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "buyer"
    assert body["verified"] is False
    stored = (
        await session.execute(select(User).where(User.auth_id == "auth|newcomer01"))
    ).scalar_one()
    assert stored.email == "newcomer@example.com"


@pytest.mark.asyncio
async def test_first_rfq_from_unknown_caller_provisions_then_forbids(
    client, session, make, headers_for
):
    product = await make.product(await make.category())
    await session.commit()
    stranger = User(auth_id="auth|newcomer02", email="second@example.com", name="Second")

    response = await client.post(
        "/api/v1/rfqs",
        json={
            "items": [{"product_id": str(product.id), "quantity": 1}],
            "expected_delivery_time": "1 week",
        },
        headers=headers_for(stranger),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"
    stored = (
        await session.execute(select(User).where(User.auth_id == "auth|newcomer02"))
    ).scalar_one()
    assert stored.verified is False
