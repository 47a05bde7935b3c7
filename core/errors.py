class PricingError(Exception):
    """Base class for errors raised by the price monitor."""


class StorageError(PricingError):
    """Raised when the price history database cannot complete an operation."""


class ScrapeError(PricingError):
    """Raised when a marketplace catalog cannot be fetched or parsed."""
