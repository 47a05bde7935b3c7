# One scheduled price scan: scrape every marketplace, persist what was found,
# then compare the two catalogs and raise alerts.

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from core.comparison.aggregator import (
    AlertThresholds,
    ComparisonAggregator,
    ComparisonReport,
)
from core.comparison.matcher import ComparisonGroup, match_listings, split_by_marketplace
from core.database.operations import PriceHistoryStore, save_scraped_listings
from core.errors import PricingError
from core.listings import Marketplace, RawListing
from core.scrapers.base import BaseScraper

logger = logging.getLogger("scan")


@dataclass
class MarketplaceScan:
    marketplace: str
    listings: List[RawListing] = field(default_factory=list)
    saved_to_db: int = 0
    errors: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def products_scraped(self) -> int:
        return len(self.listings)

    def to_dict(self, include_products: bool = True) -> Dict[str, Any]:
        data = {
            "marketplace": self.marketplace,
            "products_scraped": self.products_scraped,
            "saved_to_db": self.saved_to_db,
            "errors": list(self.errors),
            "duration": round(self.duration, 3),
        }
        if include_products:
            data["products"] = [listing.to_dict() for listing in self.listings]
        return data


@dataclass
class ScanResult:
    results: List[MarketplaceScan]
    report: ComparisonReport
    pairs: List[ComparisonGroup]
    total_duration: float = 0.0

    @property
    def listings(self) -> List[RawListing]:
        return [listing for result in self.results for listing in result.listings]

    @property
    def total_products(self) -> int:
        return sum(result.products_scraped for result in self.results)

    @property
    def success(self) -> bool:
        return any(result.products_scraped > 0 for result in self.results)


def run_scan(
    scrapers: Iterable[BaseScraper],
    store: Optional[PriceHistoryStore] = None,
    thresholds: Optional[AlertThresholds] = None,
    source_a: str = Marketplace.PRIMARY,
    source_b: str = Marketplace.SECONDARY,
) -> ScanResult:
    """Run the scrapers, optionally save their listings, and build the comparison.

    A scraper or a save that fails is recorded against its marketplace and the
    scan carries on with the others.
    """
    started = time.monotonic()
    results = []

    for scraper in scrapers:
        scan = MarketplaceScan(marketplace=scraper.name)
        scraper_started = time.monotonic()
        try:
            scan.listings = scraper.scrape()
        except PricingError as e:
            logger.error("Scraping %s failed: %s", scraper.name, e)
            scan.errors.append(f"Scraping error: {e}")
        scan.duration = time.monotonic() - scraper_started
        results.append(scan)

    all_listings = [listing for scan in results for listing in scan.listings]

    previous = {}
    if store is not None:
        # Read before writing, or today's rows would be compared with themselves
        try:
            previous = store.get_previous_observations(listing.url for listing in all_listings)
        except PricingError as e:
            logger.error("Could not load previous prices: %s", e)

        for scan in results:
            if not scan.listings:
                continue
            try:
                saved = save_scraped_listings(store, scan.listings, scan.marketplace)
            except PricingError as e:
                scan.errors.append(f"Database error: {e}")
                continue
            scan.saved_to_db = saved.saved
            scan.errors.extend(saved.errors)

    aggregator = ComparisonAggregator(thresholds or AlertThresholds.from_settings())
    report = aggregator.summarize(all_listings, previous=previous, source_a=source_a, source_b=source_b)
    listings_a, listings_b = split_by_marketplace(all_listings, source_a, source_b)
    pairs = match_listings(listings_a, listings_b, source_a, source_b)

    total_duration = time.monotonic() - started
    logger.info(
        "Scan finished: %d products, %d comparison groups, %d alerts in %.1fs",
        len(all_listings),
        len(report.groups),
        len(report.alerts),
        total_duration,
    )
    return ScanResult(results=results, report=report, pairs=pairs, total_duration=total_duration)
