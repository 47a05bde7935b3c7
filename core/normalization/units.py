import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.listings import RawListing
from core.normalization.normalizer import NormalizedFacts, normalize


def round_half_up(value: float, places: int = 2) -> float:
    """Round halves away from zero for positive values (floor(x + 0.5)).

    Prices are rounded this way everywhere instead of with Python's
    banker's rounding, so 0.125 becomes 0.13 and not 0.12.
    """
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def price_per_unit(price: float, quantity: float) -> float:
    """Price of one tablet/unit, rounded to 2 decimal places."""
    if quantity <= 0:
        return price
    return round_half_up(price / quantity, 2)


@dataclass(frozen=True)
class PricedListing:
    """A scraped listing together with its normalized facts and unit price."""

    listing: RawListing
    facts: NormalizedFacts
    quantity: int
    unit_price: float

    @property
    def marketplace(self) -> str:
        return self.listing.marketplace

    def to_dict(self) -> Dict[str, Any]:
        data = self.listing.to_dict()
        data.update(
            {
                "ingredient": self.facts.ingredient,
                "quantity": self.quantity,
                "price_per_unit": self.unit_price,
            }
        )
        if not data.get("dosage"):
            data["dosage"] = self.facts.dosage or None
        return data


def price_listing(listing: RawListing, facts: Optional[NormalizedFacts] = None) -> PricedListing:
    """Attach normalized facts and a per-unit price to a listing.

    A pack size reported by the scraper wins over the one read from the name.
    """
    facts = facts or normalize(listing.name, listing.dosage)
    quantity = listing.quantity if listing.quantity and listing.quantity > 0 else facts.quantity
    return PricedListing(
        listing=listing,
        facts=facts,
        quantity=quantity,
        unit_price=price_per_unit(listing.price, quantity),
    )
