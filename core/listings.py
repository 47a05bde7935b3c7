# Listing records handed over by the scrapers, plus the small parsing helpers
# the scrapers and the storage layer share.

import re
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.settings import get_settings


class Marketplace:
    """Known marketplace identifiers."""

    MEDSGO = "medsgo"
    WATSONS = "watsons"
    CUSTOM = "custom"
    STATIC = "static"

    # Source A and source B of every two-source comparison
    PRIMARY = MEDSGO
    SECONDARY = WATSONS

    DISPLAY_NAMES = {
        MEDSGO: "MedsGo",
        WATSONS: "Watsons",
        CUSTOM: "Custom",
        STATIC: "Static",
    }

    @classmethod
    def display_name(cls, marketplace: str) -> str:
        return cls.DISPLAY_NAMES.get(marketplace, marketplace.title())


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def default_currency() -> str:
    return get_settings().DEFAULT_CURRENCY


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


_PRICE_NOISE = re.compile(r"(₱|php|\s)", re.IGNORECASE)
_PRICE_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def parse_price(price_text: Any) -> Optional[float]:
    """Parse a peso price string such as "₱1,234.56" or "PHP 85" into a float.

    Numbers pass through unchanged. Returns None when no number can be found.
    """
    if price_text is None or isinstance(price_text, bool):
        return None
    if isinstance(price_text, (int, float)):
        return float(price_text)

    cleaned = _PRICE_NOISE.sub("", str(price_text)).replace(",", "")
    match = _PRICE_NUMBER.search(cleaned)
    if not match:
        return None
    return float(match.group(0))


def calculate_discount(original_price: Optional[float], current_price: float) -> int:
    """Percent off the original price, rounded to a whole number."""
    if not original_price or original_price <= 0 or current_price >= original_price:
        return 0
    return int(((original_price - current_price) / original_price) * 100 + 0.5)


def clean_product_name(name: str) -> str:
    return re.sub(r"\s+", " ", name or "").strip()


def _pick(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        # fromisoformat() does not accept a trailing "Z" before Python 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return utcnow()


@dataclass(frozen=True)
class RawListing:
    """One product observation scraped from a marketplace.

    Listings are immutable once scraped; everything derived from them
    (normalized facts, unit prices, comparison groups) lives elsewhere.
    """

    id: str
    name: str
    price: float
    url: str
    marketplace: str
    currency: str = field(default_factory=default_currency)
    in_stock: bool = True
    scraped_at: datetime = field(default_factory=utcnow)
    brand: Optional[str] = None
    dosage: Optional[str] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    discount_percent: Optional[int] = None
    # Pack size reported by the scraper, when the site exposes one
    quantity: Optional[int] = None

    @property
    def effective_discount(self) -> int:
        """Explicit discount when the scraper reported one, else computed from original_price."""
        if self.discount_percent:
            return int(self.discount_percent)
        return calculate_discount(self.original_price, self.price)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawListing":
        """Build a listing from scraper output; camelCase and snake_case keys are accepted."""
        price = parse_price(_pick(data, "price"))
        original_price = parse_price(_pick(data, "originalPrice", "original_price"))
        quantity = _pick(data, "quantity")
        discount = _pick(data, "discountPercent", "discount_percent")
        return cls(
            id=str(_pick(data, "id", default="") or generate_id()),
            name=clean_product_name(_pick(data, "name", default="")),
            price=price if price is not None else 0.0,
            url=_pick(data, "url", default=""),
            marketplace=str(_pick(data, "marketplace", "source", default=Marketplace.CUSTOM)).lower(),
            currency=_pick(data, "currency") or default_currency(),
            in_stock=bool(_pick(data, "inStock", "in_stock", default=True)),
            scraped_at=_parse_timestamp(_pick(data, "scrapedAt", "scraped_at")),
            brand=_pick(data, "brand"),
            dosage=_pick(data, "dosage"),
            original_price=original_price,
            image_url=_pick(data, "imageUrl", "image_url"),
            discount_percent=int(discount) if discount is not None else None,
            quantity=int(quantity) if quantity is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["scraped_at"] = self.scraped_at.isoformat()
        data["discount_percent"] = self.effective_discount or None
        return data


def is_valid_listing(listing: RawListing) -> bool:
    """A listing takes part in matching only with a name and a positive price."""
    try:
        return bool(listing.name and listing.name.strip()) and listing.price > 0
    except TypeError:
        return False
