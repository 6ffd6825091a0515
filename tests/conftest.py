import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")

import uuid
from datetime import datetime
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import medquote.models  # noqa: F401
from medquote.database import Base
from medquote.models.catalog import Category, Product
from medquote.models.notification import Notification
from medquote.models.order import Order
from medquote.models.rfq import Rfq, RfqItem, SentQuotation
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.services.auth_service import create_access_token
from medquote.services.catalog_service import normalize_name, slugify


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

class Factory:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(
        self,
        role: str = "buyer",
        verified: bool = True,
        name: Optional[str] = None,
        **fields,
    ) -> User:
        auth_id = fields.pop("auth_id", f"auth|{uuid.uuid4().hex[:12]}")
        name = name or f"{role.title()} {auth_id[-4:]}"
        user = User(
            auth_id=auth_id,
            email=fields.pop("email", f"{auth_id[-8:]}@example.com"),
            name=name,
            role=role,
            verified=verified,
            status="approved" if verified else "pending",
            **fields,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def vendor(self, *categories: Category, verified: bool = True, **fields) -> User:
        return await self.user(
            role="vendor",
            verified=verified,
            categories=[str(c.id) for c in categories],
            **fields,
        )

    async def category(self, name: str = "Diagnostic Equipment") -> Category:
        category = Category(name=name, slug=f"{slugify(name)}-{uuid.uuid4().hex[:6]}")
        self.session.add(category)
        await self.session.flush()
        return category

    async def product(self, category: Category, name: Optional[str] = None) -> Product:
        name = name or f"Product {uuid.uuid4().hex[:6]}"
        product = Product(
            name=name,
            normalized_name=normalize_name(name),
            slug=slugify(name),
            category_id=category.id,
            description="",
        )
        self.session.add(product)
        await self.session.flush()
        return product

    async def price_list(
        self, vendor: User, product: Product, price_cents: int = 10_000, **fields
    ) -> VendorQuotation:
        vq = VendorQuotation(
            vendor_id=vendor.id,
            product_id=product.id,
            quotation_type="pre-filled",
            source="manual",
            price_cents=price_cents,
            quantity=fields.pop("quantity", 1),
            payment_terms=fields.pop("payment_terms", "cash"),
            delivery_time=fields.pop("delivery_time", "7 days"),
            warranty_period=fields.pop("warranty_period", "1 year"),
            active=fields.pop("active", True),
            **fields,
        )
        self.session.add(vq)
        await self.session.flush()
        return vq

    async def rfq(self, buyer: User, *items: tuple, **fields) -> Rfq:
        """items are (product, quantity) pairs."""
        rfq = Rfq(
            buyer_id=buyer.id,
            is_guest=False,
            status=fields.pop("status", "pending"),
            is_broker=buyer.role == "vendor",
            expected_delivery_time=fields.pop("expected_delivery_time", "2 weeks"),
            **fields,
        )
        self.session.add(rfq)
        await self.session.flush()
        for product, quantity in items:
            self.session.add(RfqItem(rfq_id=rfq.id, product_id=product.id, quantity=quantity))
        await self.session.flush()
        return rfq

    async def sent_quotation(
        self,
        rfq: Rfq,
        vendor: User,
        product: Product,
        price_cents: int = 10_000,
        quantity: int = 1,
        chosen: bool = False,
        sent_at: Optional[datetime] = None,
    ) -> SentQuotation:
        sq = SentQuotation(
            rfq_id=rfq.id,
            buyer_id=rfq.buyer_id,
            vendor_id=vendor.id,
            product_id=product.id,
            quotation_id=uuid.uuid4(),
            quotation_type="pre-filled",
            price_cents=price_cents,
            quantity=quantity,
            payment_terms="cash",
            delivery_time="7 days",
            warranty_period="1 year",
            chosen=chosen,
            opened=chosen,
        )
        if sent_at is not None:
            sq.sent_at = sent_at
        self.session.add(sq)
        await self.session.flush()
        return sq

    async def order(self, sq: SentQuotation, status: str = "ordered") -> Order:
        order = Order(
            rfq_id=sq.rfq_id,
            quotation_id=sq.id,
            buyer_id=sq.buyer_id,
            vendor_id=sq.vendor_id,
            product_id=sq.product_id,
            quantity=sq.quantity,
            total_amount_cents=sq.price_cents * sq.quantity,
            status=status,
        )
        self.session.add(order)
        await self.session.flush()
        return order

    async def notifications(self, user: User, type: Optional[str] = None) -> list[Notification]:
        q = select(Notification).where(Notification.user_id == user.id)
        if type is not None:
            q = q.where(Notification.type == type)
        result = await self.session.execute(q.order_by(Notification.created_at))
        return list(result.scalars().all())


@pytest.fixture
def make(session) -> Factory:
    return Factory(session)


def auth_headers(user: User) -> dict:
    token = create_access_token(auth_id=user.auth_id, email=user.email, name=user.name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers
