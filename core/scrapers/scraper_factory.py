import logging
from typing import Dict, List, Type

from core.listings import Marketplace
from core.scrapers.base import BaseScraper
from core.scrapers.marketplaces import MARKETPLACE_CONFIGS
from core.scrapers.websites.catalog_scraper import CatalogScraper
from core.scrapers.websites.static_scraper import StaticScraper

logger = logging.getLogger("scraper.factory")


class ScraperFactory:
    """Factory for creating the right scraper for a marketplace name.

    It centralizes scraper creation so the CLI and the API only deal in
    marketplace names.
    """

    # Marketplaces with a live catalog scraper
    SCRAPERS: Dict[str, Type[BaseScraper]] = {
        Marketplace.MEDSGO: CatalogScraper,
        Marketplace.WATSONS: CatalogScraper,
    }

    @classmethod
    def create_scraper(cls, source: str, static: bool = False, **kwargs) -> BaseScraper:
        """Create and return a scraper for the specified marketplace.

        Args:
            source: Marketplace name (must be in SCRAPERS unless static)
            static: Return the fixed sample catalog instead of scraping the site
            **kwargs: Passed on to the scraper (e.g. ``url``, ``delay_range``)
        """
        if static:
            return StaticScraper(source)

        if source not in cls.SCRAPERS:
            # Fall back to static scraper with a warning
            logger.warning("Unknown source '%s', using static scraper instead", source)
            return StaticScraper(source)

        return cls.SCRAPERS[source](MARKETPLACE_CONFIGS[source], **kwargs)

    @classmethod
    def create_scrapers(cls, marketplace: str = "all", static: bool = False) -> List[BaseScraper]:
        """Scrapers for one marketplace, or for every supported one with "all"."""
        sources = list(cls.SCRAPERS) if marketplace == "all" else [marketplace]
        return [cls.create_scraper(source, static=static) for source in sources]
