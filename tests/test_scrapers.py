"""Tests for the catalog scrapers and marketplace helpers (no network access)."""

import pytest
from bs4 import BeautifulSoup

from config.settings import get_settings
from core.errors import ScrapeError
from core.listings import Marketplace
from core.scrapers.marketplaces import (
    MARKETPLACE_CONFIGS,
    get_marketplace_config,
    get_marketplace_from_url,
    validate_marketplace_url,
)
from core.scrapers.scraper_factory import ScraperFactory
from core.scrapers.websites.catalog_scraper import CatalogScraper
from core.scrapers.websites.static_scraper import StaticScraper

WATSONS_PAGE = """
<html><body>
  <div class="productInfo">
    <div class="productName"><a href="/p/erecfil-50"><span>Erecfil</span> Sildenafil 50mg 4 Tablets</a></div>
    <div class="productImage"><img src="https://images.example/erecfil.jpg"></div>
    <div class="productPrice">
      <span class="formatted-value">₱680.00</span>
      <del>₱800.00</del>
    </div>
    <div class="availability">In stock</div>
  </div>
  <div class="productInfo">
    <div class="productName"><a href="/p/tadalafil-20">Tadalafil 20mg Tablet</a></div>
    <div class="productPrice"><span class="formatted-value">₱1,002.50</span></div>
    <div class="availability">Out of stock</div>
  </div>
  <div class="productInfo">
    <div class="productName"><a href="/p/no-price">Vardenafil 20mg</a></div>
    <div class="productPrice"><span class="formatted-value">Coming soon</span></div>
  </div>
  <div class="productInfo">
    <div class="productPrice"><span class="formatted-value">₱100.00</span></div>
  </div>
</body></html>
"""

MEDSGO_PAGE = """
<html><body>
  <div class="ut2-gl__item">
    <div class="ut2-gl__name"><a href="https://medsgo.ph/erecfil-50/">Erecfil 50mg x 8 Tabs</a></div>
    <div class="ut2-gl__price">₱68000</div>
    <span class="ty-qty-in-stock">In stock</span>
  </div>
</body></html>
"""


def _scraper(marketplace):
    return CatalogScraper(MARKETPLACE_CONFIGS[marketplace], delay_range=None)


class TestCatalogScraper:
    def test_parses_watsons_cards(self):
        listings = _scraper(Marketplace.WATSONS).parse_catalog(BeautifulSoup(WATSONS_PAGE, "lxml"))
        assert len(listings) == 2

        discounted, sold_out = listings
        assert discounted.name == "Erecfil Sildenafil 50mg 4 Tablets"
        assert discounted.price == 680.0
        assert discounted.original_price == 800.0
        assert discounted.discount_percent == 15
        assert discounted.url == "https://www.watsons.com.ph/p/erecfil-50"
        assert discounted.image_url == "https://images.example/erecfil.jpg"
        assert discounted.brand == "Erecfil"
        assert discounted.dosage == "50mg"
        assert discounted.in_stock is True
        assert discounted.marketplace == Marketplace.WATSONS

        assert sold_out.price == 1002.5
        assert sold_out.original_price is None
        assert sold_out.in_stock is False
        assert sold_out.brand is None

    def test_price_divisor(self):
        listings = _scraper(Marketplace.MEDSGO).parse_catalog(BeautifulSoup(MEDSGO_PAGE, "lxml"))
        assert len(listings) == 1
        assert listings[0].price == 680.0
        assert listings[0].url == "https://medsgo.ph/erecfil-50/"
        assert listings[0].in_stock is True

    def test_empty_page(self):
        assert _scraper(Marketplace.WATSONS).parse_catalog(BeautifulSoup("<html></html>", "lxml")) == []

    def test_extract_price(self):
        scraper = _scraper(Marketplace.WATSONS)
        assert scraper.extract_price("₱1,234.50") == 1234.5
        assert scraper.extract_price("n/a") == 0.0

    def test_fetch_failure_raises_scrape_error(self, monkeypatch):
        import requests

        scraper = _scraper(Marketplace.WATSONS)

        def fail(*args, **kwargs):
            raise requests.exceptions.ConnectionError("offline")

        monkeypatch.setattr(scraper.session, "get", fail)
        with pytest.raises(ScrapeError):
            scraper.scrape()


class TestStaticScraper:
    def test_sample_catalogs(self):
        medsgo = StaticScraper(Marketplace.MEDSGO).scrape()
        watsons = StaticScraper(Marketplace.WATSONS).scrape()
        assert len(medsgo) == 4
        assert len(watsons) == 4
        assert all(listing.marketplace == Marketplace.WATSONS for listing in watsons)
        assert all(listing.url.startswith("https://www.watsons.com.ph/p/") for listing in watsons)

    def test_sample_listings_use_the_configured_currency(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "DEFAULT_CURRENCY", "USD")
        listings = StaticScraper(Marketplace.MEDSGO).scrape()
        assert {listing.currency for listing in listings} == {"USD"}

    def test_unknown_marketplace_is_empty(self):
        assert StaticScraper("lazada").scrape() == []


class TestMarketplaces:
    def test_config_lookup(self):
        assert get_marketplace_config(Marketplace.MEDSGO).price_divisor == 100.0
        assert get_marketplace_config("lazada") is None

    def test_marketplace_from_url(self):
        assert get_marketplace_from_url("https://www.watsons.com.ph/p/x") == Marketplace.WATSONS
        assert get_marketplace_from_url("https://shop.medsgo.ph/x") == Marketplace.MEDSGO
        assert get_marketplace_from_url("https://example.com/x") is None

    def test_validate_marketplace_url(self):
        assert validate_marketplace_url("https://medsgo.ph/x", Marketplace.MEDSGO)
        assert not validate_marketplace_url("https://example.com/x", Marketplace.MEDSGO)
        assert validate_marketplace_url("https://example.com/x", Marketplace.CUSTOM)
        assert not validate_marketplace_url("not a url", Marketplace.CUSTOM)


class TestScraperFactory:
    def test_live_scraper(self):
        scraper = ScraperFactory.create_scraper(Marketplace.MEDSGO)
        assert isinstance(scraper, CatalogScraper)
        assert scraper.url == MARKETPLACE_CONFIGS[Marketplace.MEDSGO].category_url

    def test_static_and_unknown_sources(self):
        assert isinstance(ScraperFactory.create_scraper(Marketplace.MEDSGO, static=True), StaticScraper)
        assert isinstance(ScraperFactory.create_scraper("lazada"), StaticScraper)

    def test_all_marketplaces(self):
        scrapers = ScraperFactory.create_scrapers("all", static=True)
        assert [scraper.name for scraper in scrapers] == [Marketplace.MEDSGO, Marketplace.WATSONS]
