"""Tests for scan orchestration."""

from typing import List

from core.comparison.aggregator import AlertThresholds
from core.errors import ScrapeError
from core.listings import Marketplace, RawListing
from core.scan import run_scan
from core.scrapers.base import BaseScraper
from core.scrapers.websites.static_scraper import StaticScraper


class FixedScraper(BaseScraper):
    def __init__(self, name, listings):
        super().__init__(name, "http://example.com")
        self.listings = listings

    def scrape(self) -> List[RawListing]:
        return list(self.listings)


class FailingScraper(BaseScraper):
    def scrape(self) -> List[RawListing]:
        raise ScrapeError("site unavailable")


def _static_scrapers():
    return [StaticScraper(Marketplace.MEDSGO), StaticScraper(Marketplace.WATSONS)]


class TestRunScan:
    def test_without_storage(self):
        result = run_scan(_static_scrapers(), thresholds=AlertThresholds())
        assert result.success
        assert result.total_products == 8
        assert [scan.saved_to_db for scan in result.results] == [0, 0]
        assert len(result.report.groups) == 4
        assert len(result.report.alerts) == 4
        assert result.report.stats.overall_cheaper == Marketplace.MEDSGO

    def test_pairs_cover_every_listing(self):
        result = run_scan(_static_scrapers(), thresholds=AlertThresholds())
        paired_a = [group.listing_a.listing.url for group in result.pairs if group.listing_a]
        paired_b = [group.listing_b.listing.url for group in result.pairs if group.listing_b]
        assert len(paired_a) == 4
        assert len(paired_b) == 4

    def test_saves_listings(self, store):
        result = run_scan(_static_scrapers(), store=store, thresholds=AlertThresholds())
        assert [scan.saved_to_db for scan in result.results] == [4, 4]
        assert len(store.list_products()) == 8

    def test_failing_scraper_does_not_abort(self):
        scrapers = [FailingScraper(Marketplace.MEDSGO, "http://example.com"), StaticScraper(Marketplace.WATSONS)]
        result = run_scan(scrapers, thresholds=AlertThresholds())
        failed, ok = result.results
        assert failed.products_scraped == 0
        assert failed.errors == ["Scraping error: site unavailable"]
        assert ok.products_scraped == 4
        assert result.success

    def test_nothing_scraped(self):
        result = run_scan([FailingScraper(Marketplace.MEDSGO, "http://example.com")])
        assert not result.success
        assert result.report.groups == []

    def test_compares_with_previous_scan(self, store, make_listing):
        before = make_listing("Sildenafil 50mg Tablet", 835, Marketplace.WATSONS)
        run_scan([FixedScraper(Marketplace.WATSONS, [before])], store=store, thresholds=AlertThresholds())

        after = make_listing("Sildenafil 50mg Tablet", 700, Marketplace.WATSONS, url=before.url, in_stock=False)
        result = run_scan([FixedScraper(Marketplace.WATSONS, [after])], store=store, thresholds=AlertThresholds())

        types = [alert.type for alert in result.report.alerts]
        assert types == ["price_drop", "out_of_stock"]
        # Same day, so the rescan replaced the stored point
        product = store.list_products()[0]
        history = store.get_history(product.id)
        assert len(history) == 1
        assert history[0].price == 700

    def test_to_dict(self):
        result = run_scan([StaticScraper(Marketplace.MEDSGO)], thresholds=AlertThresholds())
        data = result.results[0].to_dict(include_products=False)
        assert data["marketplace"] == Marketplace.MEDSGO
        assert data["products_scraped"] == 4
        assert "products" not in data
