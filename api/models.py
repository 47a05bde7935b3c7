from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from core.listings import default_currency


# Request Models
class ListingIn(BaseModel):
    """A scraped listing posted for comparison."""

    id: Optional[str] = None
    name: str
    price: float
    url: str = ""
    marketplace: str
    currency: str = Field(default_factory=default_currency)
    in_stock: bool = True
    scraped_at: Optional[datetime] = None
    brand: Optional[str] = None
    dosage: Optional[str] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    discount_percent: Optional[int] = None
    quantity: Optional[int] = None


class ScanRequest(BaseModel):
    """Request model for scanning competitor catalogs."""

    marketplace: Literal["all", "medsgo", "watsons"] = Field(
        default="all", description="Marketplace to scan, or all of them"
    )
    static: bool = Field(
        default=False, description="Use the built-in sample catalogs instead of the live sites"
    )
    save_to_db: bool = Field(default=True, description="Whether to save the results")
    include_products: bool = Field(
        default=False, description="Whether to return every scraped product"
    )


class CompareRequest(BaseModel):
    """Listings to compare without touching the database."""

    listings: List[ListingIn] = Field(default=[])
    source_a: str = "medsgo"
    source_b: str = "watsons"


class BackfillRequest(BaseModel):
    days: int = Field(default=7, ge=1, le=90, description="Number of days to backfill")


# Response Models
class PricedListingOut(BaseModel):
    """A listing as it appears inside a comparison group."""

    id: str
    name: str
    price: float
    url: str
    marketplace: str
    currency: str
    in_stock: bool
    scraped_at: str
    brand: Optional[str] = None
    dosage: Optional[str] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    discount_percent: Optional[int] = None
    ingredient: str
    quantity: int
    price_per_unit: float


class ComparisonGroupOut(BaseModel):
    key: str
    name: str
    ingredient: str
    dosage: str
    products: Dict[str, Optional[PricedListingOut]]
    price_diff: Optional[float] = None
    price_diff_percent: Optional[float] = None
    cheapest: Optional[str] = None
    market_average: Optional[float] = None
    match_score: Optional[int] = None
    status: str


class AlertOut(BaseModel):
    type: str
    severity: str
    title: str
    message: str
    action: Optional[str] = None
    related_listing: Optional[dict] = None


class MarketStatsOut(BaseModel):
    total_comparable: int
    wins: Dict[str, int]
    average_unit_price: Dict[str, Optional[float]]
    overall_cheaper: Optional[str] = None
    price_diff_percent: Optional[float] = None


class CompareResponse(BaseModel):
    """Comparison groups, alerts and market statistics for a set of listings."""

    groups: List[ComparisonGroupOut]
    alerts: List[AlertOut]
    stats: MarketStatsOut


class MarketplaceScanOut(BaseModel):
    marketplace: str
    products_scraped: int
    saved_to_db: int
    errors: List[str]
    duration: float
    products: Optional[List[dict]] = None


class ScanResponse(BaseModel):
    """Response for a scan operation."""

    success: bool
    results: List[MarketplaceScanOut]
    total_products: int
    total_duration: float
    comparison: CompareResponse
    message: str


class ProductInfo(BaseModel):
    """API representation of a stored competitor product."""

    id: str
    name: str
    brand: Optional[str] = None
    dosage: Optional[str] = None
    url: str
    image_url: Optional[str] = None
    competitor_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PricePoint(BaseModel):
    """API representation of one day's price."""

    id: int
    price: float
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    currency: str
    in_stock: bool
    scraped_at: datetime
    is_synthetic: bool

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    product_id: str
    count: int
    history: List[PricePoint]


class ForecastResponse(BaseModel):
    product_id: str
    our_price: float
    suggested_price: Optional[float] = None
    predicted_competitor_price: Optional[float] = None
    trend_percent: Optional[float] = None
    explanation: str


class BackfillResponse(BaseModel):
    products_processed: int
    total_created: int
    errors: List[str]
