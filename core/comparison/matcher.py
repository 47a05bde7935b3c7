# Two ways of lining up listings from two independently scraped catalogs:
#
# - group_listings() buckets every listing by active ingredient and dosage and
#   keeps the cheapest-per-unit listing of each marketplace in a bucket. This
#   feeds the comparison table.
# - match_listings() pairs source A listings with source B listings by the
#   number of words their names share. This is the scan-time join used when
#   names cannot be classified by ingredient.

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.listings import Marketplace, RawListing, is_valid_listing
from core.normalization.normalizer import INGREDIENTS, normalize
from core.normalization.units import PricedListing, price_listing

# Below this share of the market average a group needs attention
CRITICAL_RATIO = 0.95


@dataclass
class ComparisonGroup:
    """Listings from up to two marketplaces believed to be the same product.

    Either side may be missing; check ``listing_a``/``listing_b`` (or
    ``is_comparable``) before reading per-source fields.
    """

    ingredient: str
    dosage: str
    source_a: str = Marketplace.PRIMARY
    source_b: str = Marketplace.SECONDARY
    listing_a: Optional[PricedListing] = None
    listing_b: Optional[PricedListing] = None
    price_diff: Optional[float] = None
    price_diff_percent: Optional[float] = None
    cheapest: Optional[str] = None
    market_average: Optional[float] = None
    # Only set by the token-overlap pairing
    match_score: Optional[int] = None
    name: str = ""

    @property
    def key(self) -> str:
        return f"{self.ingredient}-{self.dosage}"

    @property
    def is_comparable(self) -> bool:
        return self.listing_a is not None and self.listing_b is not None

    def listing_for(self, marketplace: str) -> Optional[PricedListing]:
        if marketplace == self.source_a:
            return self.listing_a
        if marketplace == self.source_b:
            return self.listing_b
        return None

    def cheaper_and_dearer(self) -> Tuple[Optional[PricedListing], Optional[PricedListing]]:
        if self.cheapest == self.source_a:
            return self.listing_a, self.listing_b
        return self.listing_b, self.listing_a

    @property
    def status(self) -> str:
        if not self.is_comparable:
            return "Monitoring"
        lowest = min(self.listing_a.unit_price, self.listing_b.unit_price)
        if lowest < self.market_average * CRITICAL_RATIO:
            return "Critical"
        return "Stable"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "ingredient": self.ingredient,
            "dosage": self.dosage,
            "products": {
                self.source_a: self.listing_a.to_dict() if self.listing_a else None,
                self.source_b: self.listing_b.to_dict() if self.listing_b else None,
            },
            "price_diff": self.price_diff,
            "price_diff_percent": self.price_diff_percent,
            "cheapest": self.cheapest,
            "market_average": self.market_average,
            "match_score": self.match_score,
            "status": self.status,
        }


def _apply_pricing(group: ComparisonGroup) -> ComparisonGroup:
    """Fill in the derived price fields from whichever sides are present."""
    if group.is_comparable:
        unit_a = group.listing_a.unit_price
        unit_b = group.listing_b.unit_price
        group.price_diff = unit_a - unit_b
        group.price_diff_percent = (group.price_diff / unit_b) * 100 if unit_b else None
        # Source A wins ties
        group.cheapest = group.source_a if unit_a <= unit_b else group.source_b
        group.market_average = (unit_a + unit_b) / 2
    elif group.listing_a is not None:
        group.cheapest = group.source_a
        group.market_average = group.listing_a.unit_price
    elif group.listing_b is not None:
        group.cheapest = group.source_b
        group.market_average = group.listing_b.unit_price
    return group


def _priced(listings: Iterable[RawListing]) -> List[PricedListing]:
    return [price_listing(listing) for listing in listings if is_valid_listing(listing)]


def split_by_marketplace(
    listings: Iterable[RawListing],
    source_a: str = Marketplace.PRIMARY,
    source_b: str = Marketplace.SECONDARY,
) -> Tuple[List[RawListing], List[RawListing]]:
    listings = list(listings)
    return (
        [listing for listing in listings if listing.marketplace == source_a],
        [listing for listing in listings if listing.marketplace == source_b],
    )


def group_listings(
    listings: Iterable[RawListing],
    source_a: str = Marketplace.PRIMARY,
    source_b: str = Marketplace.SECONDARY,
    vocabulary: Sequence[str] = INGREDIENTS,
) -> List[ComparisonGroup]:
    """Bucket listings by ingredient and dosage, one representative per marketplace.

    Listings without a recognised ingredient or a dosage, and listings from
    other marketplaces, are left out. Within a bucket the lowest unit price
    wins; on equal unit prices the listing seen first is kept.
    """
    groups: Dict[str, ComparisonGroup] = {}

    for listing in listings:
        if not is_valid_listing(listing) or listing.marketplace not in (source_a, source_b):
            continue

        facts = normalize(listing.name, listing.dosage, vocabulary)
        if not facts.is_classified:
            continue

        priced = price_listing(listing, facts)
        group = groups.get(facts.group_key)
        if group is None:
            group = ComparisonGroup(
                ingredient=facts.ingredient,
                dosage=facts.dosage,
                source_a=source_a,
                source_b=source_b,
                name=f"{facts.ingredient} {facts.dosage}",
            )
            groups[facts.group_key] = group

        if listing.marketplace == source_a:
            if group.listing_a is None or priced.unit_price < group.listing_a.unit_price:
                group.listing_a = priced
        elif group.listing_b is None or priced.unit_price < group.listing_b.unit_price:
            group.listing_b = priced

    result = [_apply_pricing(group) for group in groups.values()]
    return sorted(result, key=lambda g: (g.ingredient, g.dosage))


def overlap_threshold(token_count: int) -> int:
    """Minimum shared words for a pairing: one, or a third of source A's words."""
    return max(1, token_count // 3)


def match_listings(
    listings_a: Iterable[RawListing],
    listings_b: Iterable[RawListing],
    source_a: str = Marketplace.PRIMARY,
    source_b: str = Marketplace.SECONDARY,
) -> List[ComparisonGroup]:
    """Greedily pair source A listings with source B listings by shared name words.

    Source A listings are visited in input order and each takes the unused
    source B listing with the most shared tokens (the first one found on a
    tie). Every source A listing yields a group, paired or not, followed by
    the source B listings nobody picked, in their input order.
    """
    priced_a = _priced(listings_a)
    priced_b = _priced(listings_b)
    used = set()
    groups: List[ComparisonGroup] = []

    for item_a in priced_a:
        best_index = None
        best_score = 0
        for index, item_b in enumerate(priced_b):
            if index in used:
                continue
            score = len(item_a.facts.tokens & item_b.facts.tokens)
            if score > best_score:
                best_score = score
                best_index = index

        group = ComparisonGroup(
            ingredient=item_a.facts.ingredient,
            dosage=item_a.facts.dosage,
            source_a=source_a,
            source_b=source_b,
            listing_a=item_a,
            name=item_a.listing.name,
        )
        if best_index is not None and best_score >= overlap_threshold(len(item_a.facts.tokens)):
            used.add(best_index)
            group.listing_b = priced_b[best_index]
            group.match_score = best_score
        groups.append(_apply_pricing(group))

    for index, item_b in enumerate(priced_b):
        if index in used:
            continue
        group = ComparisonGroup(
            ingredient=item_b.facts.ingredient,
            dosage=item_b.facts.dosage,
            source_a=source_a,
            source_b=source_b,
            listing_b=item_b,
            name=item_b.listing.name,
        )
        groups.append(_apply_pricing(group))

    return groups
