"""Tests for alerts and market statistics."""

import pytest

from core.comparison.aggregator import AlertThresholds, ComparisonAggregator
from core.comparison.matcher import group_listings
from core.history import PriceObservation
from core.listings import Marketplace

MEDSGO = Marketplace.MEDSGO
WATSONS = Marketplace.WATSONS


@pytest.fixture
def aggregator():
    return ComparisonAggregator(AlertThresholds())


class TestAlerts:
    def test_sample_catalog_alerts(self, aggregator, sample_listings):
        report = aggregator.summarize(sample_listings)
        types = [alert.type for alert in report.alerts]
        assert types == ["discount", "cheapest", "cheapest", "cheapest"]

    def test_discount_alert(self, aggregator, make_listing):
        listing = make_listing("Erecfil 50mg", 680, MEDSGO, original_price=800)
        alerts = aggregator.discount_alerts([listing])
        assert len(alerts) == 1
        assert alerts[0].severity == "success"
        assert alerts[0].title == "15% Discount at MedsGo"
        assert alerts[0].related_listing is listing

    def test_discount_below_threshold(self, aggregator, make_listing):
        listing = make_listing("Erecfil 50mg", 90, MEDSGO, original_price=100)
        assert aggregator.discount_alerts([listing]) == []

    def test_variance_alert(self, aggregator, make_listing):
        groups = group_listings(
            [
                make_listing("Sildenafil 50mg - 1 Box x 8 Tabs", 680, MEDSGO),
                make_listing("Sildenafil 50mg Tablet", 835, WATSONS),
            ]
        )
        alerts = aggregator.variance_alerts(groups)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == "cheapest"
        assert alert.severity == "warning"
        assert alert.title == "Sildenafil 50mg: MedsGo is 90% cheaper per tablet"
        assert "₱85.00/tab (8 tabs)" in alert.message
        assert "₱460.00/tablet" in alert.action

    def test_small_variance_is_ignored(self, aggregator, make_listing):
        groups = group_listings(
            [
                make_listing("Tadalafil 20mg Tablet", 100, MEDSGO),
                make_listing("Tadalafil 20mg Tablet", 105, WATSONS),
            ]
        )
        assert aggregator.variance_alerts(groups) == []

    def test_alerts_are_capped(self, aggregator, make_listing):
        listings = [
            make_listing(f"Product {i}", 80, MEDSGO, original_price=100) for i in range(12)
        ]
        report = aggregator.summarize(listings)
        assert len(report.alerts) == 10

    def test_cap_is_configurable(self, make_listing):
        aggregator = ComparisonAggregator(AlertThresholds(max_alerts=3))
        listings = [
            make_listing(f"Product {i}", 80, MEDSGO, original_price=100) for i in range(5)
        ]
        assert len(aggregator.summarize(listings).alerts) == 3

    def test_no_alerts_for_empty_input(self, aggregator):
        report = aggregator.summarize([])
        assert report.groups == []
        assert report.alerts == []


class TestChangeAlerts:
    def test_price_drop_and_stock_out(self, aggregator, make_listing):
        dropped = make_listing("Sildenafil 50mg Tablet", 80, WATSONS)
        gone = make_listing("Tadalafil 20mg Tablet", 500, WATSONS, in_stock=False)
        previous = {
            dropped.url: PriceObservation(price=100),
            gone.url: PriceObservation(price=500, in_stock=True),
        }
        alerts = aggregator.change_alerts([gone, dropped], previous)
        assert [alert.type for alert in alerts] == ["price_drop", "out_of_stock"]
        assert alerts[0].title == "Price drop at Watsons: 20.0%"
        assert alerts[1].related_listing is gone

    def test_small_drop_is_ignored(self, aggregator, make_listing):
        listing = make_listing("Sildenafil 50mg Tablet", 95, WATSONS)
        previous = {listing.url: PriceObservation(price=100)}
        assert aggregator.change_alerts([listing], previous) == []

    def test_change_alerts_follow_comparison_alerts(self, aggregator, sample_listings):
        dropped = sample_listings[-1]
        previous = {dropped.url: PriceObservation(price=dropped.price * 2)}
        report = aggregator.summarize(sample_listings, previous=previous)
        assert [alert.type for alert in report.alerts][-1] == "price_drop"
        assert len(report.alerts) == 5


class TestMarketStats:
    def test_sample_catalogs(self, aggregator, sample_listings):
        stats = aggregator.summarize(sample_listings).stats
        assert stats.total_comparable == 3
        assert stats.wins == {MEDSGO: 3, WATSONS: 0}
        assert stats.average_unit_price[MEDSGO] == pytest.approx(90.0)
        assert stats.average_unit_price[WATSONS] == pytest.approx(940.9167, abs=0.001)
        assert stats.overall_cheaper == MEDSGO

    def test_nothing_comparable(self, aggregator, make_listing):
        stats = aggregator.summarize([make_listing("Vardenafil 20mg 4s", 1800, MEDSGO)]).stats
        assert stats.total_comparable == 0
        assert stats.overall_cheaper is None
        assert stats.average_unit_price == {MEDSGO: None, WATSONS: None}

    def test_equal_averages_favour_source_b(self, aggregator, make_listing):
        stats = aggregator.summarize(
            [
                make_listing("Sildenafil 50mg Tablet", 100, MEDSGO),
                make_listing("Sildenafil 50mg Tablet", 100, WATSONS),
            ]
        ).stats
        assert stats.overall_cheaper == WATSONS
        assert stats.price_diff_percent == 0

    def test_report_to_dict(self, aggregator, sample_listings):
        data = aggregator.summarize(sample_listings).to_dict()
        assert len(data["groups"]) == 4
        assert data["stats"]["overall_cheaper"] == MEDSGO
        assert data["alerts"][0]["related_listing"]["marketplace"] == MEDSGO
