import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from core.listings import (
    RawListing,
    calculate_discount,
    clean_product_name,
    generate_id,
    utcnow,
)
from core.normalization.normalizer import extract_brand, extract_dosage
from core.scrapers.marketplaces import MarketplaceConfig
from core.scrapers.web_scraper_base import WebScraperBase

_PESO_AMOUNT = re.compile(r"₱\s*([\d,]+(?:\.\d+)?)")


class CatalogScraper(WebScraperBase):
    """Selector-driven scraper for a pharmacy category page.

    The selectors come from a MarketplaceConfig, so MedsGo and Watsons share
    this one implementation. Only server-rendered cards are visible to it.
    """

    def __init__(self, config: MarketplaceConfig, url: Optional[str] = None, **kwargs):
        super().__init__(config.id, url or config.category_url, **kwargs)
        self.config = config
        self.selectors = config.selectors

    def scrape(self) -> List[RawListing]:
        self.logger.info("Starting %s catalog scrape: %s", self.config.name, self.url)
        soup = self.get_page()
        listings = self.parse_catalog(soup)
        self.logger.info("Found %d products on %s", len(listings), self.config.name)
        return listings

    def parse_catalog(self, soup: BeautifulSoup) -> List[RawListing]:
        listings = []
        for card in soup.select(self.selectors["product_card"]):
            listing = self.parse_card(card)
            if listing is not None:
                listings.append(listing)
        return listings

    def _select_text(self, card, key: str) -> str:
        selector = self.selectors.get(key)
        if not selector:
            return ""
        element = card.select_one(selector)
        return element.get_text(" ", strip=True) if element else ""

    def _amounts(self, text: str) -> List[float]:
        return [
            float(raw.replace(",", "")) / self.config.price_divisor
            for raw in _PESO_AMOUNT.findall(text or "")
        ]

    def parse_card(self, card) -> Optional[RawListing]:
        """Read one product card; None when it has no name or no positive price."""
        name = clean_product_name(self._select_text(card, "product_name"))
        if not name:
            return None

        link = card.select_one(self.selectors.get("product_link", "a"))
        href = link.get("href") if link else None
        url = urljoin(self.config.base_url, href) if href else ""

        image = card.select_one(self.selectors["image"]) if self.selectors.get("image") else None
        image_url = (image.get("src") or image.get("data-src")) if image else None

        card_text = card.get_text(" ", strip=True)
        prices = self._amounts(self._select_text(card, "price") or card_text)
        original_candidates = self._amounts(self._select_text(card, "original_price"))

        current_price = 0.0
        original_price = None
        if original_candidates and prices:
            original_price = max(original_candidates)
            current_price = min(prices)
        elif len(prices) >= 2:
            # A struck-through price is the higher of the two
            ordered = sorted(prices, reverse=True)
            original_price, current_price = ordered[0], ordered[1]
        elif prices:
            current_price = prices[0]

        if current_price <= 0:
            self.logger.debug("No price found for %s", name)
            return None

        stock_text = self._select_text(card, "stock").lower()
        in_stock = "in stock" in stock_text or "out of stock" not in card_text.lower()

        discount = None
        if original_price and original_price > current_price:
            discount = calculate_discount(original_price, current_price)
        else:
            original_price = None

        return RawListing(
            id=generate_id(),
            name=name,
            price=current_price,
            original_price=original_price,
            discount_percent=discount,
            currency=self.config.currency,
            url=url,
            image_url=image_url,
            in_stock=in_stock,
            marketplace=self.config.id,
            brand=self._select_text(card, "brand") or extract_brand(name),
            dosage=self._select_text(card, "dosage") or extract_dosage(name) or None,
            scraped_at=utcnow(),
        )
