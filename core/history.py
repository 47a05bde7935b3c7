# Storage-neutral view of a price observation, shared by the aggregator (which
# compares against the previous scan) and the price history store.

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from core.listings import RawListing, default_currency, to_utc_naive, utcnow


def scraped_date_for(scraped_at: datetime) -> date:
    """Calendar day (UTC) an observation belongs to; the day-deduplication key."""
    return to_utc_naive(scraped_at).date()


@dataclass(frozen=True)
class PriceObservation:
    price: float
    currency: str = field(default_factory=default_currency)
    in_stock: bool = True
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    scraped_at: datetime = None
    is_synthetic: bool = False

    def __post_init__(self):
        if self.scraped_at is None:
            object.__setattr__(self, "scraped_at", utcnow())

    @property
    def scraped_date(self) -> date:
        return scraped_date_for(self.scraped_at)

    @classmethod
    def from_listing(cls, listing: RawListing) -> "PriceObservation":
        return cls(
            price=listing.price,
            currency=listing.currency,
            in_stock=listing.in_stock,
            original_price=listing.original_price,
            discount_percent=listing.effective_discount or None,
            scraped_at=listing.scraped_at,
        )
