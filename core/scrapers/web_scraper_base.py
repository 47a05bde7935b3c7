import requests
from bs4 import BeautifulSoup
from typing import Dict, List, Optional
import time
import random
import logging

from config.settings import get_settings
from core.errors import ScrapeError
from core.listings import RawListing, parse_price
from core.scrapers.base import BaseScraper


class WebScraperBase(BaseScraper):
    """Base class for scrapers that fetch real pages over HTTP.

    This class extends the BaseScraper with an HTTP session, HTML parsing,
    a politeness delay between requests and peso price parsing.
    """

    def __init__(
        self,
        name: str,
        url: str,
        user_agent: Optional[str] = None,
        timeout: Optional[int] = None,
        delay_range=(1, 3),
    ):
        """Initialize the web scraper.

        Args:
            name: Marketplace identifier
            url: Category page to scrape
            user_agent: Optional custom user agent string
            timeout: Request timeout in seconds, defaults to REQUEST_TIMEOUT
            delay_range: Bounds of the random pause before each request, in seconds
        """
        super().__init__(name, url)
        settings = get_settings()
        self.user_agent = user_agent or settings.USER_AGENT
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.delay_range = delay_range
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml",
            "Accept-Language": "en-PH,en;q=0.9",
        })
        self.logger = logging.getLogger(f"scraper.{name}")

    def get_page(self, url: str = None, params: Dict = None) -> BeautifulSoup:
        """Fetch a page and parse it with BeautifulSoup.

        Raises:
            ScrapeError: If the request fails or returns an error status
        """
        target_url = url or self.url
        self.logger.info("Fetching %s", target_url)

        # Add a small delay to be respectful to the server
        if self.delay_range:
            time.sleep(random.uniform(*self.delay_range))

        try:
            response = self.session.get(target_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.error("Error fetching %s: %s", target_url, str(e))
            raise ScrapeError(f"Could not fetch {target_url}: {e}") from e

        return BeautifulSoup(response.text, "lxml")

    def extract_price(self, price_text: str) -> float:
        """Extract a numerical price from text such as "₱1,234.56"; 0.0 if none."""
        price = parse_price(price_text)
        if price is None:
            self.logger.warning("Could not parse price: %s", price_text)
            return 0.0
        return price

    def scrape(self) -> List[RawListing]:
        """
        This should be implemented by subclasses to scrape specific websites.
        """
        raise NotImplementedError("WebScraperBase.scrape() must be implemented by subclasses")
