"""
Vendor advisory: a fixed decision table over the vendor's metrics.

Each rule is a (trigger, card) pair evaluated in table order; every rule
whose trigger holds contributes one card. Market benchmarks fall back to a
25% win rate and a 4.0 rating when the marketplace has no data yet.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.models.order import Order
from medquote.models.rating import Rating
from medquote.models.rfq import SentQuotation
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.schemas.analytics import (
    AdviceCard,
    AdvisoryInsights,
    BestPractice,
    MarketBenchmarks,
    Opportunities,
    VendorAdvisory,
    YourPerformance,
)
from medquote.services.vendor_analytics_service import (
    mean_or_zero,
    sent_rows,
    vendor_rating_values,
    win_rate,
)

logger = structlog.get_logger()

DEFAULT_MARKET_WIN_RATE = 25.0
DEFAULT_MARKET_RATING = 4.0
RESPONSE_SAMPLE_SIZE = 20


def _to_fixed(value: float, digits: int) -> str:
    """Fixed-point text with halves rounded up, so 12.5 reads "13"."""
    exponent = Decimal(1).scaleb(-digits)
    return str(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


@dataclass
class AdvisoryMetrics:
    catalog_size: int
    sent: int
    won: int
    win_rate: float
    ratings: int
    avg_rating: float
    avg_response_hours: float
    total_revenue_cents: int
    market_win_rate: float
    market_rating: float
    active_vendors: int


def _low_ratings(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="low-ratings-urgent",
        category="Quality",
        priority="urgent",
        title="Low Customer Ratings - Immediate Action Required",
        description=(
            f"Your average rating is {_to_fixed(m.avg_rating, 1)} stars, which is significantly below "
            f"market average ({_to_fixed(m.market_rating, 1)} stars). This is seriously hurting your credibility."
        ),
        impact="High - Hospitals are less likely to choose your quotations",
        actions=[
            "Contact your recent customers to understand their concerns",
            "Review negative feedback and identify common patterns",
            "Improve your delivery times - this is often the #1 complaint",
            "Ensure product quality matches your descriptions and photos",
            "Consider offering a satisfaction guarantee",
        ],
        expected_result="Improving to 4+ stars can increase win rate by 30-50%",
    )


def _low_win_rate(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="low-win-rate-urgent",
        category="Pricing",
        priority="urgent",
        title="Very Low Win Rate - Pricing Strategy Review Needed",
        description=(
            f"Your win rate is {_to_fixed(m.win_rate, 0)}% vs market average {_to_fixed(m.market_win_rate, 0)}%. "
            "You're likely pricing too high or not competitive enough."
        ),
        impact="Critical - You're losing most opportunities",
        actions=[
            "Review your pricing on top 5 products - compare with competitors",
            "Consider reducing prices by 10-15% temporarily to gain market share",
            "Focus on products where you have cost advantages",
            "Offer bundle deals or volume discounts",
            "Check if your payment terms are too strict (consider offering credit)",
        ],
        expected_result="Competitive pricing can double or triple your win rate",
    )


def _slow_response(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="slow-response",
        category="Speed",
        priority="high",
        title="Slow Response Time Costing You Sales",
        description=(
            f"You're taking {_to_fixed(m.avg_response_hours, 0)} hours on average to respond to RFQs. "
            "Fast responders win 2x more deals."
        ),
        impact="High - First responders often win the deal",
        actions=[
            "Enable WhatsApp notifications in Settings to get instant alerts",
            "Check the platform at least 3 times per day (morning, lunch, evening)",
            "Set up your catalog with pre-filled prices for quick submissions",
            "Aim to respond within 6 hours - ideally within 2 hours",
            "Use templates for common products to save time",
        ],
        expected_result="Responding within 6 hours can increase win rate by 25%",
    )


def _small_catalog(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="small-catalog",
        category="Catalog",
        priority="high",
        title="Limited Product Catalog",
        description=(
            f"You only have {m.catalog_size} products in your catalog. "
            "More products = more opportunities."
        ),
        impact="High - Missing out on many RFQs",
        actions=[
            "Add at least 20-30 products to your catalog across different categories",
            "Use the Catalog Scanner feature to quickly add products",
            "Focus on popular items: Hospital Beds, Wheelchairs, Surgical Equipment",
            "Include detailed specifications and clear photos",
            "Set competitive prices for pre-filled quotations",
        ],
        expected_result="Larger catalog can 5x your RFQ opportunities",
    )


def _below_average_win_rate(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="below-average-win-rate",
        category="Strategy",
        priority="high",
        title="Win Rate Below Market Average",
        description=(
            f"Your win rate ({_to_fixed(m.win_rate, 0)}%) is below market average "
            f"({_to_fixed(m.market_win_rate, 0)}%). Small improvements can make big differences."
        ),
        impact="Medium-High - Optimizing could significantly increase revenue",
        actions=[
            "Review your lost quotations - why didn't hospitals choose you?",
            "Compare your prices to competitors - adjust if too high",
            "Improve your quotation presentation - add better photos",
            "Highlight your unique value: warranty, fast delivery, quality",
            "Offer flexible payment terms (cash + credit options)",
        ],
        expected_result="Matching market average could increase revenue by 30%",
    )


def _low_activity(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="low-activity",
        category="Activity",
        priority="medium",
        title="Increase Your Activity Level",
        description=(
            f"You've only submitted {m.sent} quotations. More submissions = more wins."
        ),
        impact="Medium - More at-bats means more home runs",
        actions=[
            "Check the RFQs tab daily for new opportunities",
            "Submit quotations even if you're unsure - practice makes perfect",
            "Join group buying opportunities for bulk orders",
            "Don't skip RFQs just because there's competition",
            "Set a goal: 5-10 new quotations per week",
        ],
        expected_result="2x quotations typically leads to 2x revenue",
    )


def _few_ratings(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="few-ratings",
        category="Reputation",
        priority="medium",
        title="Build Your Reputation",
        description=(
            f"You've won {m.won} deals but only have {m.ratings} ratings. Ratings build trust."
        ),
        impact="Medium - More ratings increase trust and credibility",
        actions=[
            "Follow up with customers after delivery to ensure satisfaction",
            "Politely ask satisfied customers to leave a rating",
            "Excellent service = excellent ratings = more future business",
            "Respond professionally to any negative feedback",
            "Use ratings to identify and fix service issues",
        ],
        expected_result="10+ ratings with 4+ stars significantly boosts credibility",
    )


def _increase_prices(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="increase-prices",
        category="Pricing",
        priority="medium",
        title="You May Be Priced Too Low",
        description=(
            f"Your win rate ({_to_fixed(m.win_rate, 0)}%) is above market average "
            f"({_to_fixed(m.market_win_rate, 0)}%). You might be leaving money on the table."
        ),
        impact="Medium - Could increase profit margins significantly",
        actions=[
            "Test increasing prices by 5-10% on your next 5 quotations",
            "If win rate stays above 30%, continue with higher prices",
            "Premium pricing with premium service can attract better clients",
            "Don't compete on price alone - emphasize quality and reliability",
            "Monitor impact on win rate - find the sweet spot",
        ],
        expected_result="10% price increase = 10% more profit per deal",
    )


def _leverage_ratings(m: AdvisoryMetrics) -> AdviceCard:
    return AdviceCard(
        id="leverage-ratings",
        category="Marketing",
        priority="low",
        title="Leverage Your Excellent Reputation",
        description=(
            f"Outstanding! You have {_to_fixed(m.avg_rating, 1)} stars from {m.ratings} ratings. "
            "Use this to your advantage."
        ),
        impact="Low - Optimization opportunity",
        actions=[
            "Highlight your rating in quotations and communications",
            "Ask for testimonials from your happiest customers",
            "Use your reputation to justify premium pricing",
            "Request referrals from satisfied hospitals",
            "Share success stories (with permission) in your profile",
        ],
        expected_result="Strong reputation allows 5-10% premium pricing",
    )


RULES: list[tuple[Callable[[AdvisoryMetrics], bool], Callable[[AdvisoryMetrics], AdviceCard]]] = [
    (lambda m: m.avg_rating < 3.5 and m.ratings > 5, _low_ratings),
    (lambda m: m.win_rate < 15 and m.sent > 10, _low_win_rate),
    (lambda m: m.avg_response_hours > 24 and m.sent > 0, _slow_response),
    (lambda m: m.catalog_size < 10, _small_catalog),
    (lambda m: 15 <= m.win_rate < m.market_win_rate - 5, _below_average_win_rate),
    (lambda m: 0 < m.sent < 20, _low_activity),
    (lambda m: m.ratings < 3 and m.won > 5, _few_ratings),
    (lambda m: m.win_rate > m.market_win_rate, _increase_prices),
    (lambda m: m.avg_rating >= 4.5 and m.ratings > 10, _leverage_ratings),
]

BEST_PRACTICES = [
    BestPractice(
        title="The 6-Hour Rule",
        description=(
            "Top vendors respond to RFQs within 6 hours. "
            "First responders have 2x higher win rates."
        ),
        difficulty="Easy",
    ),
    BestPractice(
        title="Competitive Pricing with Value",
        description=(
            "Win rate sweet spot is 25-35%. Lower = priced too high. "
            "Higher = priced too low. Find your balance."
        ),
        difficulty="Medium",
    ),
    BestPractice(
        title="Professional Quotations",
        description=(
            "Include high-quality photos, detailed specifications, clear warranty terms, "
            "and flexible payment options."
        ),
        difficulty="Easy",
    ),
    BestPractice(
        title="Build Relationships",
        description=(
            "Follow up after deliveries, ask for feedback, resolve issues quickly. "
            "Repeat customers are gold."
        ),
        difficulty="Medium",
    ),
    BestPractice(
        title="Catalog Everything",
        description=(
            "Have 50+ products in your catalog with pre-filled prices. "
            "More products = more opportunities."
        ),
        difficulty="Medium",
    ),
    BestPractice(
        title="Group Buying",
        description=(
            "Join group buy opportunities early - they convert to large orders "
            "with bulk pricing advantages."
        ),
        difficulty="Easy",
    ),
    BestPractice(
        title="Excellence Compounds",
        description=(
            "4.5+ star ratings allow premium pricing. Poor ratings require discounting. "
            "Quality pays off long-term."
        ),
        difficulty="Hard",
    ),
]


def build_advice(metrics: AdvisoryMetrics) -> list[AdviceCard]:
    return [card(metrics) for trigger, card in RULES if trigger(metrics)]


async def collect_metrics(session: AsyncSession, vendor: User) -> AdvisoryMetrics:
    catalog_size = (
        await session.execute(
            select(func.count(VendorQuotation.id)).where(VendorQuotation.vendor_id == vendor.id)
        )
    ).scalar() or 0

    sent = await sent_rows(session, vendor.id)
    won = sum(1 for s in sent if s.chosen)
    ratings = [r.rating for r in await vendor_rating_values(session, vendor.id)]
    sample = sent[:RESPONSE_SAMPLE_SIZE]

    revenue = (
        await session.execute(
            select(func.coalesce(func.sum(Order.total_amount_cents), 0)).where(
                Order.vendor_id == vendor.id
            )
        )
    ).scalar() or 0

    market_sent = (await session.execute(select(func.count(SentQuotation.id)))).scalar() or 0
    market_won = (
        await session.execute(
            select(func.count(SentQuotation.id)).where(SentQuotation.chosen == True)  # noqa: E712
        )
    ).scalar() or 0
    market_rating = (await session.execute(select(func.avg(Rating.rating)))).scalar()
    active_vendors = (
        await session.execute(select(func.count(User.id)).where(User.role == "vendor"))
    ).scalar() or 0

    return AdvisoryMetrics(
        catalog_size=catalog_size,
        sent=len(sent),
        won=won,
        win_rate=win_rate(len(sent), won),
        ratings=len(ratings),
        avg_rating=mean_or_zero(ratings),
        avg_response_hours=mean_or_zero([s.response_hours for s in sample]),
        total_revenue_cents=int(revenue),
        market_win_rate=(
            win_rate(market_sent, market_won) if market_sent > 0 else DEFAULT_MARKET_WIN_RATE
        ),
        market_rating=float(market_rating) if market_rating is not None else DEFAULT_MARKET_RATING,
        active_vendors=active_vendors,
    )


async def get_vendor_advisory(session: AsyncSession, vendor: User) -> VendorAdvisory:
    if vendor.role != "vendor":
        return VendorAdvisory()

    m = await collect_metrics(session, vendor)
    potential_revenue = 0
    if m.sent > 0 and m.won > 0:
        potential_revenue = round(m.total_revenue_cents / m.won * m.sent * (m.market_win_rate / 100))

    advice = build_advice(m)
    logger.info(
        "vendor_advisory_generated",
        vendor_id=str(vendor.id),
        cards=[card.id for card in advice],
    )
    return VendorAdvisory(
        advice=advice,
        insights=AdvisoryInsights(
            your_performance=YourPerformance(
                quotations_submitted=m.sent,
                deals_won=m.won,
                win_rate=m.win_rate,
                avg_rating=m.avg_rating,
                total_revenue_cents=m.total_revenue_cents,
                avg_response_hours=m.avg_response_hours,
            ),
            market_benchmarks=MarketBenchmarks(
                avg_win_rate=m.market_win_rate,
                avg_rating=m.market_rating,
                top_performer_win_rate=m.market_win_rate * 1.5,
                active_vendors=m.active_vendors,
            ),
            opportunities=Opportunities(
                potential_revenue_cents=potential_revenue,
                missed_deals=m.sent - m.won,
            ),
        ),
        best_practices=list(BEST_PRACTICES),
    )
