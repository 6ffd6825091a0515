from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from medquote.schemas.rfq import PartyContact


# ── Price analytics ─────────────────────────────────────────


class QuotePriceComparison(BaseModel):
    sent_quotation_id: str
    vendor: Optional[PartyContact] = None
    price_cents: int
    quantity: int
    delivery_time: str
    warranty_period: str
    payment_terms: str
    chosen: bool
    savings_vs_best: int
    savings_percentage: float
    is_lowest: bool
    is_highest: bool
    vs_average: float


class ProductPriceAnalytics(BaseModel):
    product_id: str
    product_name: str
    quotes: List[QuotePriceComparison]
    lowest_price: int
    highest_price: int
    average_price: float
    median_price: float
    best_quote_id: str
    potential_savings: int
    price_range: int
    savings_percentage: float


class PriceTotals(BaseModel):
    potential_savings: int
    lowest_cost: int
    highest_cost: int
    average_cost: float
    savings_percentage: float


class RfqPriceAnalytics(BaseModel):
    by_product: Dict[str, ProductPriceAnalytics]
    totals: PriceTotals
    quote_count: int
    product_count: int


class MarketPrice(BaseModel):
    average_price: float
    median_price: float
    lowest_price: int
    highest_price: int
    sample_size: int
    last_updated: str


class PricingHistoryPoint(BaseModel):
    price_cents: int
    date: str
    rfq_id: str


# ── Vendor performance ──────────────────────────────────────


class MonthlyRevenue(BaseModel):
    month: str
    revenue_cents: int


class VendorPerformance(BaseModel):
    total_quotations: int
    total_won_quotations: int
    win_rate: float
    total_revenue_cents: int
    total_orders: int
    delivered_orders: int
    delivery_rate: float
    total_ratings: int
    average_rating: float
    average_delivery_rating: float
    average_communication_rating: float
    average_quality_rating: float
    average_response_time_hours: float
    revenue_by_month: List[MonthlyRevenue]


class MarketComparison(BaseModel):
    my_win_rate: float
    market_average_win_rate: float
    my_average_rating: float
    market_average_rating: float
    total_active_vendors: int


class RecentPerformance(BaseModel):
    quotations_last_30_days: int
    won_quotations_last_30_days: int
    orders_last_30_days: int
    revenue_last_30_days_cents: int


class VendorDashboardStats(BaseModel):
    total_quotations: int
    active_quotations: int
    quotations_sent: int
    quotations_opened: int
    average_rating: float
    total_ratings: int


# ── Advisory ────────────────────────────────────────────────


class AdviceCard(BaseModel):
    id: str
    category: str
    priority: str
    title: str
    description: str
    impact: str
    actions: List[str]
    expected_result: str


class YourPerformance(BaseModel):
    quotations_submitted: int
    deals_won: int
    win_rate: float
    avg_rating: float
    total_revenue_cents: int
    avg_response_hours: float


class MarketBenchmarks(BaseModel):
    avg_win_rate: float
    avg_rating: float
    top_performer_win_rate: float
    active_vendors: int


class Opportunities(BaseModel):
    potential_revenue_cents: int
    missed_deals: int


class AdvisoryInsights(BaseModel):
    your_performance: YourPerformance
    market_benchmarks: MarketBenchmarks
    opportunities: Opportunities


class BestPractice(BaseModel):
    title: str
    description: str
    difficulty: str


class VendorAdvisory(BaseModel):
    advice: List[AdviceCard] = Field(default_factory=list)
    insights: Optional[AdvisoryInsights] = None
    best_practices: List[BestPractice] = Field(default_factory=list)


# ── Site analytics ──────────────────────────────────────────


class TrackVisitRequest(BaseModel):
    page: Optional[str] = Field(None, max_length=500)


class VisitorStats(BaseModel):
    total: int
    last_30_days: int


class RfqStats(BaseModel):
    total: int
    last_30_days: int
    pending: int
    quoted: int
    completed: int


class QuotationStats(BaseModel):
    total: int
    opened: int
    open_rate: float


class UserStats(BaseModel):
    total_vendors: int
    verified_vendors: int
    total_buyers: int
    verified_buyers: int


class CategoryStats(BaseModel):
    category_name: str
    product_count: int
    rfq_count: int


class SiteAnalytics(BaseModel):
    visitors: VisitorStats
    rfqs: RfqStats
    quotations: QuotationStats
    users: UserStats
    categories: List[CategoryStats]
