from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.settings import get_settings
from core.comparison.matcher import ComparisonGroup, group_listings
from core.history import PriceObservation
from core.listings import Marketplace, RawListing, is_valid_listing

CURRENCY_SYMBOL = "₱"


@dataclass
class Alert:
    """A notice for the operator, generated fresh on every scan."""

    type: str  # discount | cheapest | price_drop | out_of_stock
    severity: str  # info | warning | success
    title: str
    message: str
    action: Optional[str] = None
    related_listing: Optional[RawListing] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "action": self.action,
            "related_listing": self.related_listing.to_dict() if self.related_listing else None,
        }


@dataclass
class AlertThresholds:
    discount_percent: float = 15.0
    variance_percent: float = 10.0
    price_drop_percent: float = 10.0
    max_alerts: int = 10
    store_name: str = "GoRocky"

    @classmethod
    def from_settings(cls, settings=None) -> "AlertThresholds":
        settings = settings or get_settings()
        return cls(
            discount_percent=settings.DISCOUNT_ALERT_PERCENT,
            variance_percent=settings.VARIANCE_ALERT_PERCENT,
            price_drop_percent=settings.PRICE_DROP_ALERT_PERCENT,
            max_alerts=settings.MAX_ALERTS,
            store_name=settings.STORE_NAME,
        )


@dataclass
class MarketStats:
    source_a: str
    source_b: str
    total_comparable: int = 0
    wins: Dict[str, int] = field(default_factory=dict)
    average_unit_price: Dict[str, Optional[float]] = field(default_factory=dict)
    overall_cheaper: Optional[str] = None
    price_diff_percent: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_comparable": self.total_comparable,
            "wins": dict(self.wins),
            "average_unit_price": dict(self.average_unit_price),
            "overall_cheaper": self.overall_cheaper,
            "price_diff_percent": self.price_diff_percent,
        }


@dataclass
class ComparisonReport:
    groups: List[ComparisonGroup]
    alerts: List[Alert]
    stats: MarketStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groups": [group.to_dict() for group in self.groups],
            "alerts": [alert.to_dict() for alert in self.alerts],
            "stats": self.stats.to_dict(),
        }


def _label(group: ComparisonGroup) -> str:
    if group.ingredient and group.dosage and group.ingredient != "UNKNOWN":
        return f"{group.ingredient} {group.dosage}"
    return group.name


class ComparisonAggregator:
    """Turns comparison groups into alerts and market-wide statistics."""

    def __init__(self, thresholds: Optional[AlertThresholds] = None):
        self.thresholds = thresholds or AlertThresholds()

    def discount_alerts(self, listings: Iterable[RawListing]) -> List[Alert]:
        alerts = []
        for listing in listings:
            discount = listing.effective_discount
            if discount and discount >= self.thresholds.discount_percent:
                alerts.append(
                    Alert(
                        type="discount",
                        severity="success",
                        title=f"{discount}% Discount at {Marketplace.display_name(listing.marketplace)}",
                        message=f"{listing.name} is {discount}% off",
                        action=f"Check if {self.thresholds.store_name} can match this {discount}% discount",
                        related_listing=listing,
                    )
                )
        return alerts

    def variance_alerts(self, groups: Iterable[ComparisonGroup]) -> List[Alert]:
        alerts = []
        for group in groups:
            if not group.is_comparable:
                continue
            diff = abs(group.price_diff_percent or 0)
            if diff < self.thresholds.variance_percent:
                continue

            cheaper, dearer = group.cheaper_and_dearer()
            cheaper_name = Marketplace.display_name(cheaper.marketplace)
            dearer_name = Marketplace.display_name(dearer.marketplace)
            label = _label(group)
            alerts.append(
                Alert(
                    type="cheapest",
                    severity="warning",
                    title=f"{label}: {cheaper_name} is {diff:.0f}% cheaper per tablet",
                    message=(
                        f"{cheaper_name} sells at {CURRENCY_SYMBOL}{cheaper.unit_price:.2f}/tab "
                        f"({cheaper.quantity} tabs) vs {dearer_name} at "
                        f"{CURRENCY_SYMBOL}{dearer.unit_price:.2f}/tab ({dearer.quantity} tabs)"
                    ),
                    action=(
                        f"Consider pricing {self.thresholds.store_name}'s {label} competitively "
                        f"around {CURRENCY_SYMBOL}{group.market_average:.2f}/tablet"
                    ),
                    related_listing=cheaper.listing,
                )
            )
        return alerts

    def change_alerts(
        self,
        listings: Iterable[RawListing],
        previous: Mapping[str, PriceObservation],
    ) -> List[Alert]:
        """Price drops and stock-outs compared with the previous observation of each URL."""
        drops = []
        stock_outs = []
        for listing in listings:
            before = previous.get(listing.url)
            if before is None:
                continue

            marketplace = Marketplace.display_name(listing.marketplace)
            if before.price > 0 and listing.price < before.price:
                drop = (before.price - listing.price) / before.price * 100
                if drop >= self.thresholds.price_drop_percent:
                    drops.append(
                        Alert(
                            type="price_drop",
                            severity="warning",
                            title=f"Price drop at {marketplace}: {drop:.1f}%",
                            message=(
                                f"{listing.name} dropped from {CURRENCY_SYMBOL}{before.price:.2f} "
                                f"to {CURRENCY_SYMBOL}{listing.price:.2f}"
                            ),
                            action=f"Review {self.thresholds.store_name}'s price for this product",
                            related_listing=listing,
                        )
                    )

            if before.in_stock and not listing.in_stock:
                stock_outs.append(
                    Alert(
                        type="out_of_stock",
                        severity="info",
                        title=f"Out of stock at {marketplace}",
                        message=f"{listing.name} is no longer available",
                        related_listing=listing,
                    )
                )
        return drops + stock_outs

    def build_alerts(
        self,
        listings: Iterable[RawListing],
        groups: Iterable[ComparisonGroup],
        previous: Optional[Mapping[str, PriceObservation]] = None,
    ) -> List[Alert]:
        """Alerts in a fixed order, cut off at ``max_alerts`` (not ranked)."""
        listings = [listing for listing in listings if is_valid_listing(listing)]
        alerts = self.discount_alerts(listings)
        alerts.extend(self.variance_alerts(groups))
        if previous:
            alerts.extend(self.change_alerts(listings, previous))
        return alerts[: self.thresholds.max_alerts]

    def market_stats(
        self,
        groups: Iterable[ComparisonGroup],
        source_a: str = Marketplace.PRIMARY,
        source_b: str = Marketplace.SECONDARY,
    ) -> MarketStats:
        comparable = [group for group in groups if group.is_comparable]
        stats = MarketStats(
            source_a=source_a,
            source_b=source_b,
            total_comparable=len(comparable),
            wins={
                source_a: sum(1 for g in comparable if g.cheapest == source_a),
                source_b: sum(1 for g in comparable if g.cheapest == source_b),
            },
            average_unit_price={source_a: None, source_b: None},
        )
        if not comparable:
            return stats

        average_a = sum(g.listing_a.unit_price for g in comparable) / len(comparable)
        average_b = sum(g.listing_b.unit_price for g in comparable) / len(comparable)
        stats.average_unit_price = {source_a: average_a, source_b: average_b}
        stats.overall_cheaper = source_a if average_a < average_b else source_b
        if average_b:
            stats.price_diff_percent = (average_a - average_b) / average_b * 100
        return stats

    def summarize(
        self,
        listings: Iterable[RawListing],
        groups: Optional[List[ComparisonGroup]] = None,
        previous: Optional[Mapping[str, PriceObservation]] = None,
        source_a: str = Marketplace.PRIMARY,
        source_b: str = Marketplace.SECONDARY,
    ) -> ComparisonReport:
        listings = list(listings)
        if groups is None:
            groups = group_listings(listings, source_a, source_b)
        return ComparisonReport(
            groups=groups,
            alerts=self.build_alerts(listings, groups, previous),
            stats=self.market_stats(groups, source_a, source_b),
        )
