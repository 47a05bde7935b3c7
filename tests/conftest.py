"""Shared test fixtures for the price monitor."""

from datetime import datetime

import pytest

from core.database.operations import Database
from core.listings import Marketplace, RawListing, generate_id
from core.scrapers.websites.static_scraper import StaticScraper


@pytest.fixture
def db_url(tmp_path) -> str:
    """URL of a temporary SQLite database file."""
    return f"sqlite:///{tmp_path / 'test_pricing.db'}"


@pytest.fixture
def db(db_url):
    """Provide an initialized Database on a temporary SQLite file."""
    database = Database(db_url)
    database.init_db()
    yield database
    database.close()


@pytest.fixture
def store(db):
    """Provide a PriceHistoryStore on a fresh session."""
    with db.store() as price_store:
        yield price_store


@pytest.fixture
def make_listing():
    """Factory for listings with sensible defaults and a unique URL."""

    def _make(name, price, marketplace=Marketplace.MEDSGO, **kwargs):
        kwargs.setdefault("url", f"https://{marketplace}.example/product/{generate_id()}")
        kwargs.setdefault("id", generate_id())
        return RawListing(name=name, price=price, marketplace=marketplace, **kwargs)

    return _make


@pytest.fixture
def sample_listings():
    """The MedsGo and Watsons sample catalogs, MedsGo first."""
    return (
        StaticScraper(Marketplace.MEDSGO).scrape()
        + StaticScraper(Marketplace.WATSONS).scrape()
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 10, 12, 0, 0)
