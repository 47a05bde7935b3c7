from typing import List

from core.listings import Marketplace, RawListing, utcnow
from core.scrapers.base import BaseScraper

# name, price, original price, in stock, url slug
_SAMPLE_CATALOG = {
    Marketplace.MEDSGO: [
        ("Sildenafil 50mg - 1 Box x 8 Tabs (Erecfil 50)", 680.0, 800.0, True, "erecfil-50"),
        ("Sildenafil 100mg - 1 Box x 10 Tabs (Spiagra 100)", 950.0, None, True, "spiagra-100"),
        ("Tadalafil 20mg - 1 Tablet (Dalafil)", 90.0, None, True, "dalafil-20"),
        ("Vardenafil 20mg 4s (Levitra)", 1800.0, None, False, "levitra-20"),
    ],
    Marketplace.WATSONS: [
        ("Sildenafil 50mg Tablet", 835.0, None, True, "sildenafil-50"),
        ("Sildenafil 100mg Tablet", 1002.5, None, True, "sildenafil-100"),
        ("Tadalafil 20mg Tablet", 985.25, None, True, "tadalafil-20"),
        ("Multivitamins + Zinc 30 Capsules", 450.0, None, True, "multivitamins-30"),
    ],
}

_BASE_URLS = {
    Marketplace.MEDSGO: "https://medsgo.ph/product",
    Marketplace.WATSONS: "https://www.watsons.com.ph/p",
}


class StaticScraper(BaseScraper):
    """A scraper that returns a fixed sample catalog (for demos and testing)."""

    def __init__(self, name: str = Marketplace.MEDSGO, url: str = "http://example.com"):
        super().__init__(name, url)

    def scrape(self) -> List[RawListing]:
        """Return the sample listings of this scraper's marketplace."""
        scraped_at = utcnow()
        base_url = _BASE_URLS.get(self.name, self.url)
        return [
            RawListing(
                id=f"{self.name}-{slug}",
                name=name,
                price=price,
                original_price=original_price,
                in_stock=in_stock,
                url=f"{base_url}/{slug}",
                marketplace=self.name,
                scraped_at=scraped_at,
            )
            for name, price, original_price, in_stock, slug in _SAMPLE_CATALOG.get(self.name, [])
        ]
