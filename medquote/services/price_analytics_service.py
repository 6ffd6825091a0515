"""
Price comparison over SentQuotations.

All prices are integer cents. Averages and medians may be fractional and are
returned as floats. When several quotes share the lowest price the best quote
is the earliest sent, then the lowest vendor id.
"""

import uuid
from collections import OrderedDict
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.database import utcnow
from medquote.errors import forbidden
from medquote.models.catalog import Product
from medquote.models.rfq import SentQuotation
from medquote.models.user import User
from medquote.schemas.analytics import (
    MarketPrice,
    PriceTotals,
    PricingHistoryPoint,
    ProductPriceAnalytics,
    QuotePriceComparison,
    RfqPriceAnalytics,
)
from medquote.schemas.common import iso
from medquote.schemas.rfq import party_contact
from medquote.services.rfq_service import get_rfq

logger = structlog.get_logger()

MARKET_WINDOW_DAYS = 90
PRICING_HISTORY_LIMIT = 10


def median(sorted_prices: list[int]) -> float:
    n = len(sorted_prices)
    if n % 2 == 0:
        return (sorted_prices[n // 2 - 1] + sorted_prices[n // 2]) / 2
    return float(sorted_prices[n // 2])


def savings_percentage(lowest: int, highest: int) -> float:
    if highest == 0:
        return 0.0
    return (highest - lowest) / highest * 100


def analyze_product(
    product: Product, quotes: list[tuple[SentQuotation, User]]
) -> ProductPriceAnalytics:
    """Quotes must already be in tie-break order."""
    prices = sorted(sq.price_cents for sq, _ in quotes)
    lowest, highest = prices[0], prices[-1]
    average = sum(prices) / len(prices)
    best = next(sq for sq, _ in quotes if sq.price_cents == lowest)

    return ProductPriceAnalytics(
        product_id=str(product.id),
        product_name=product.name,
        quotes=[
            QuotePriceComparison(
                sent_quotation_id=str(sq.id),
                vendor=party_contact(vendor, revealed=bool(sq.chosen)),
                price_cents=sq.price_cents,
                quantity=sq.quantity,
                delivery_time=sq.delivery_time,
                warranty_period=sq.warranty_period,
                payment_terms=sq.payment_terms,
                chosen=bool(sq.chosen),
                savings_vs_best=sq.price_cents - lowest,
                savings_percentage=(
                    0.0
                    if sq.price_cents == lowest
                    else (sq.price_cents - lowest) / sq.price_cents * 100
                ),
                is_lowest=sq.price_cents == lowest,
                is_highest=sq.price_cents == highest,
                vs_average=sq.price_cents - average,
            )
            for sq, vendor in quotes
        ],
        lowest_price=lowest,
        highest_price=highest,
        average_price=average,
        median_price=median(prices),
        best_quote_id=str(best.id),
        potential_savings=highest - lowest,
        price_range=highest - lowest,
        savings_percentage=savings_percentage(lowest, highest),
    )


async def get_rfq_price_analytics(
    session: AsyncSession, rfq_id: uuid.UUID, caller: User
) -> Optional[RfqPriceAnalytics]:
    rfq = await get_rfq(session, rfq_id)
    if caller.role != "admin" and rfq.buyer_id != caller.id:
        raise forbidden("Access denied")

    result = await session.execute(
        select(SentQuotation, User)
        .join(User, User.id == SentQuotation.vendor_id)
        .where(SentQuotation.rfq_id == rfq.id)
        .order_by(SentQuotation.sent_at, SentQuotation.id)
    )
    rows = result.all()
    if not rows:
        return None
    # Stable: sent_at first, then vendor id as a string
    rows = sorted(rows, key=lambda r: (r[0].sent_at, str(r[0].vendor_id)))

    by_product: "OrderedDict[uuid.UUID, list[tuple[SentQuotation, User]]]" = OrderedDict()
    for sq, vendor in rows:
        by_product.setdefault(sq.product_id, []).append((sq, vendor))

    products_result = await session.execute(select(Product).where(Product.id.in_(by_product)))
    products = {p.id: p for p in products_result.scalars().all()}

    analytics = {
        str(product_id): analyze_product(products[product_id], quotes)
        for product_id, quotes in by_product.items()
        if product_id in products
    }
    lowest_cost = sum(a.lowest_price for a in analytics.values())
    highest_cost = sum(a.highest_price for a in analytics.values())

    return RfqPriceAnalytics(
        by_product=analytics,
        totals=PriceTotals(
            potential_savings=sum(a.potential_savings for a in analytics.values()),
            lowest_cost=lowest_cost,
            highest_cost=highest_cost,
            average_cost=sum(a.average_price for a in analytics.values()),
            savings_percentage=savings_percentage(lowest_cost, highest_cost),
        ),
        quote_count=len(rows),
        product_count=len(analytics),
    )


async def get_product_market_price(
    session: AsyncSession, product_id: uuid.UUID
) -> Optional[MarketPrice]:
    now = utcnow()
    result = await session.execute(
        select(SentQuotation.price_cents).where(
            SentQuotation.product_id == product_id,
            SentQuotation.sent_at >= now - timedelta(days=MARKET_WINDOW_DAYS),
        )
    )
    prices = sorted(row[0] for row in result.all())
    if not prices:
        return None
    return MarketPrice(
        average_price=sum(prices) / len(prices),
        median_price=median(prices),
        lowest_price=prices[0],
        highest_price=prices[-1],
        sample_size=len(prices),
        last_updated=iso(now),
    )


async def get_vendor_pricing_history(
    session: AsyncSession, vendor_id: uuid.UUID, product_id: uuid.UUID
) -> list[PricingHistoryPoint]:
    result = await session.execute(
        select(SentQuotation)
        .where(SentQuotation.vendor_id == vendor_id, SentQuotation.product_id == product_id)
        .order_by(SentQuotation.sent_at.desc())
        .limit(PRICING_HISTORY_LIMIT)
    )
    return [
        PricingHistoryPoint(
            price_cents=sq.price_cents,
            date=sq.sent_at.date().isoformat(),
            rfq_id=str(sq.rfq_id),
        )
        for sq in result.scalars().all()
    ]
