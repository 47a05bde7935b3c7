# This file defines the abstract base class for all scrapers in the system
# It establishes the common interface every marketplace adapter must follow

import abc
from typing import List

from core.listings import RawListing


class BaseScraper(abc.ABC):
    """Base class for marketplace scrapers.

    Scrapers are the collaborators that turn a marketplace catalog into
    RawListing records. Everything downstream (normalization, matching,
    alerting, storage) works on those records only, so a new pharmacy can be
    added without touching the comparison logic.
    """

    def __init__(self, name: str, url: str):
        """Initialize the scraper with a name and URL.

        Args:
            name: Marketplace identifier (e.g., "medsgo", "watsons"). It is
                 stamped on every listing as its ``marketplace``.
            url: Category page or catalog endpoint to scrape
        """
        self.name = name
        self.url = url

    @abc.abstractmethod
    def scrape(self) -> List[RawListing]:
        """Scrape the catalog and return its listings.

        Returns:
            RawListing records with at least a name, a positive price and
            the product URL. Cards that cannot be read are left out rather
            than returned half-filled.

        Raises:
            ScrapeError: If the catalog cannot be fetched at all
        """
        raise NotImplementedError("Concrete scraper classes must implement scrape() method")
