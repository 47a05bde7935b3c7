# Marketplace configurations with the CSS selectors used to read their category pages

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse

from core.listings import Marketplace, default_currency


@dataclass(frozen=True)
class MarketplaceConfig:
    id: str
    name: str
    base_url: str
    category_url: str
    selectors: Dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    currency: str = field(default_factory=default_currency)
    # Some sites render centavos without a decimal point ("₱68000" for 680.00)
    price_divisor: float = 1.0


MARKETPLACE_CONFIGS: Dict[str, MarketplaceConfig] = {
    Marketplace.MEDSGO: MarketplaceConfig(
        id=Marketplace.MEDSGO,
        name="MedsGo",
        base_url="https://medsgo.ph",
        category_url="https://medsgo.ph/prescription-medicines/erectile-dysfunction/",
        selectors={
            "product_card": ".ut2-gl__item",
            "product_name": ".ut2-gl__name a",
            "product_link": ".ut2-gl__name a",
            "image": ".ut2-gl__image img",
            "price": ".ut2-gl__price",
            "stock": ".ty-qty-in-stock",
            "brand": "[class*='brand']",
            "dosage": "[class*='dosage']",
        },
        price_divisor=100.0,
    ),
    Marketplace.WATSONS: MarketplaceConfig(
        id=Marketplace.WATSONS,
        name="Watsons",
        base_url="https://www.watsons.com.ph",
        category_url="https://www.watsons.com.ph/health-and-rx/erectile-dysfunction-ed-/c/060410",
        selectors={
            "product_card": ".productInfo",
            "product_name": ".productName a",
            "product_link": ".productName a",
            "image": ".productImage img",
            "price": ".productPrice .formatted-value",
            "original_price": ".productPrice .original-price, .productPrice del",
            "stock": "[class*='in-stock'], .availability",
            "brand": ".productName a span",
        },
    ),
}


def get_marketplace_config(marketplace: str) -> Optional[MarketplaceConfig]:
    return MARKETPLACE_CONFIGS.get(marketplace)


def _host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _same_site(url: str, base_url: str) -> bool:
    host = _host(url)
    base_host = _host(base_url)
    return bool(host) and (host == base_host or host.endswith(f".{base_host}"))


def validate_marketplace_url(url: str, marketplace: str) -> bool:
    """Check that a URL belongs to the marketplace; custom marketplaces accept any URL."""
    if not _host(url):
        return False
    config = MARKETPLACE_CONFIGS.get(marketplace)
    if config is None:
        return True
    return _same_site(url, config.base_url)


def get_marketplace_from_url(url: str) -> Optional[str]:
    for marketplace, config in MARKETPLACE_CONFIGS.items():
        if _same_site(url, config.base_url):
            return marketplace
    return None
