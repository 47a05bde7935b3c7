# This file contains the database access layer: an explicit database handle that owns
# the engine and session factory, and the price history store built on a session

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Generator, Iterable, List, Optional

import pymysql
import sqlalchemy.exc
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from config.settings import get_settings
from core.errors import StorageError
from core.history import PriceObservation, scraped_date_for
from core.listings import (
    Marketplace,
    RawListing,
    default_currency,
    is_valid_listing,
    to_utc_naive,
    utcnow,
)
from core.normalization.normalizer import extract_brand, extract_dosage
from core.normalization.units import round_half_up
from .models import Base, Competitor, PriceHistory, Product

logger = logging.getLogger("storage")

# Defaults used when a marketplace is seen for the first time
COMPETITOR_DEFAULTS = {
    Marketplace.MEDSGO: {
        "name": "MedsGo Pharmacy",
        "base_url": "https://medsgo.ph",
        "category_url": "https://medsgo.ph/prescription-medicines/erectile-dysfunction/",
    },
    Marketplace.WATSONS: {
        "name": "Watsons Philippines",
        "base_url": "https://www.watsons.com.ph",
        "category_url": "https://www.watsons.com.ph/health-and-rx/erectile-dysfunction-ed-/c/060410",
    },
}


def ensure_database_exists(url: str):
    """Create the MySQL database named in ``url`` if the server does not have it yet."""
    engine = create_engine(url)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return  # Database exists and connection works
    except sqlalchemy.exc.OperationalError as e:
        # This is the specific exception for connection problems including "Unknown database"
        if "Unknown database" not in str(e):
            logger.error("Database connection error: %s", e)
            raise

        parsed = make_url(url)
        try:
            connection = pymysql.connect(
                host=parsed.host or "localhost",
                user=parsed.username,
                password=parsed.password or "",
                port=int(parsed.port or 3306),
            )
            try:
                with connection.cursor() as cursor:
                    cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{parsed.database}`")
            finally:
                connection.close()
            logger.info("Created database '%s'", parsed.database)
        except pymysql.Error as db_err:
            logger.error("Failed to create database: %s", db_err)
            raise
    finally:
        engine.dispose()


class Database:
    """Explicit handle on the price database: open it, hand out sessions, close it.

    Nothing is connected at import time; callers (CLI, API, tests) create a
    handle for the URL they want and pass it to whatever needs storage.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or get_settings().DATABASE_URL
        self.echo = echo
        self.engine = None
        self._session_factory = None

    @property
    def is_mysql(self) -> bool:
        return make_url(self.url).get_backend_name() == "mysql"

    def open(self) -> "Database":
        if self.engine is None:
            connect_args = {}
            if make_url(self.url).get_backend_name() == "sqlite":
                # Sessions may be used from the API's worker threads
                connect_args["check_same_thread"] = False
            self.engine = create_engine(self.url, echo=self.echo, connect_args=connect_args)
            self._session_factory = sessionmaker(bind=self.engine)
        return self

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._session_factory = None

    def init_db(self):
        """Create tables if they don't exist (and the MySQL database itself if needed)."""
        if self.is_mysql:
            ensure_database_exists(self.url)
        self.open()
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        self.open()
        return self._session_factory()

    @contextmanager
    def store(self) -> Generator["PriceHistoryStore", None, None]:
        """Yield a store on a fresh session and close the session afterwards."""
        session = self.session()
        try:
            yield PriceHistoryStore(session)
        finally:
            session.close()

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


@dataclass
class SaveResult:
    saved: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class BackfillResult:
    created: int = 0
    errors: List[str] = field(default_factory=list)


class PriceHistoryStore:
    """Reads and writes competitors, products and their day-deduplicated price history.

    Every write commits immediately. Database failures are rolled back and
    re-raised as StorageError.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _transaction(self, what: str):
        try:
            yield
            self.session.commit()
        except sqlalchemy.exc.SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Failed to {what}: {e}") from e

    @contextmanager
    def _reading(self, what: str):
        try:
            yield
        except sqlalchemy.exc.SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Failed to {what}: {e}") from e

    def upsert_competitor(self, marketplace: str) -> Competitor:
        """Return the competitor row for a marketplace, creating it on first use."""
        with self._reading(f"look up competitor {marketplace}"):
            competitor = (
                self.session.query(Competitor).filter(Competitor.marketplace == marketplace).first()
            )
        if competitor:
            return competitor

        defaults = COMPETITOR_DEFAULTS.get(marketplace, {})
        competitor = Competitor(
            marketplace=marketplace,
            name=defaults.get("name", Marketplace.display_name(marketplace)),
            base_url=defaults.get("base_url"),
            category_url=defaults.get("category_url"),
            enabled=True,
        )
        with self._transaction(f"create competitor {marketplace}"):
            self.session.add(competitor)
        with self._reading(f"reload competitor {marketplace}"):
            self.session.refresh(competitor)
        return competitor

    def upsert_product(self, listing: RawListing, competitor_id: str) -> str:
        """Create or refresh the product for a listing; idempotent by URL.

        Returns:
            The product id (the existing one when the URL is already known)
        """
        with self._transaction(f"save product {listing.name}"):
            product = self.session.query(Product).filter(Product.url == listing.url).first()
            if product is None:
                product = Product(url=listing.url, competitor_id=competitor_id)
                self.session.add(product)
            product.name = listing.name
            product.brand = listing.brand or extract_brand(listing.name)
            product.dosage = listing.dosage or extract_dosage(listing.name) or None
            product.external_id = listing.id
            product.image_url = listing.image_url
            product.updated_at = utcnow()
        return product.id

    def append_or_update_price_point(self, product_id: str, observation: PriceObservation) -> PriceHistory:
        """Record an observation, keeping at most one point per product per day.

        A point already stored for the observation's calendar day is
        overwritten in place; otherwise a new point is inserted.
        """
        scraped_at = to_utc_naive(observation.scraped_at)
        scraped_date = scraped_date_for(scraped_at)
        with self._transaction(f"record price for product {product_id}"):
            point = (
                self.session.query(PriceHistory)
                .filter(PriceHistory.product_id == product_id)
                .filter(PriceHistory.scraped_date == scraped_date)
                .first()
            )
            if point is None:
                point = PriceHistory(product_id=product_id, scraped_date=scraped_date)
                self.session.add(point)
            point.price = observation.price
            point.original_price = observation.original_price
            point.discount_percent = observation.discount_percent
            point.currency = observation.currency
            point.in_stock = observation.in_stock
            point.scraped_at = scraped_at
            point.is_synthetic = observation.is_synthetic
        with self._reading(f"reload price for product {product_id}"):
            self.session.refresh(point)
        return point

    def get_history(self, product_id: str, limit: int = 30) -> List[PriceHistory]:
        """Most recent points first, at most ``limit`` of them."""
        with self._reading(f"load history for product {product_id}"):
            return (
                self.session.query(PriceHistory)
                .filter(PriceHistory.product_id == product_id)
                .order_by(PriceHistory.scraped_at.desc())
                .limit(limit)
                .all()
            )

    def get_latest_point(self, product_id: str) -> Optional[PriceHistory]:
        with self._reading(f"load latest price for product {product_id}"):
            return (
                self.session.query(PriceHistory)
                .filter(PriceHistory.product_id == product_id)
                .order_by(PriceHistory.scraped_at.desc())
                .first()
            )

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._reading(f"load product {product_id}"):
            return self.session.query(Product).filter(Product.id == product_id).first()

    def list_products(self, marketplace: Optional[str] = None) -> List[Product]:
        with self._reading("list products"):
            query = self.session.query(Product)
            if marketplace:
                query = query.join(Competitor).filter(Competitor.marketplace == marketplace)
            return query.order_by(Product.name).all()

    def get_previous_observations(self, urls: Iterable[str]) -> Dict[str, PriceObservation]:
        """Latest stored observation for each known product URL."""
        urls = [url for url in set(urls) if url]
        if not urls:
            return {}

        with self._reading("load known products"):
            products = self.session.query(Product).filter(Product.url.in_(urls)).all()

        previous = {}
        for product in products:
            point = self.get_latest_point(product.id)
            if point is None:
                continue
            previous[product.url] = PriceObservation(
                price=point.price,
                currency=point.currency,
                in_stock=point.in_stock,
                original_price=point.original_price,
                discount_percent=point.discount_percent,
                scraped_at=point.scraped_at,
                is_synthetic=point.is_synthetic,
            )
        return previous

    def backfill(
        self,
        product_id: str,
        current_price: float,
        days: int = 7,
        currency: Optional[str] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> BackfillResult:
        """Synthesize demo history for the last ``days`` days that have no point yet.

        Each synthetic price is the current price with up to +/-5% uniform
        noise, flagged ``is_synthetic``. It is a cold-start aid for charts and
        forecasts, not real history. Days with any existing point are skipped.
        """
        currency = currency or default_currency()
        now = to_utc_naive(now) if now else utcnow()
        rng = rng or random.Random()
        result = BackfillResult()

        with self._reading(f"load history dates for product {product_id}"):
            existing_dates = {
                row.scraped_date
                for row in self.session.query(PriceHistory.scraped_date)
                .filter(PriceHistory.product_id == product_id)
                .all()
            }

        for i in range(days, 0, -1):
            scraped_at = now - timedelta(days=i)
            scraped_date = scraped_at.date()
            if scraped_date in existing_dates:
                continue

            variation = rng.uniform(-0.05, 0.05)
            price = round_half_up(current_price * (1 + variation), 2)
            try:
                self.session.add(
                    PriceHistory(
                        product_id=product_id,
                        price=price,
                        currency=currency,
                        in_stock=True,
                        scraped_at=scraped_at,
                        scraped_date=scraped_date,
                        is_synthetic=True,
                    )
                )
                self.session.commit()
            except sqlalchemy.exc.SQLAlchemyError as e:
                self.session.rollback()
                result.errors.append(f"Day {i}: {e}")
                continue
            existing_dates.add(scraped_date)
            result.created += 1

        return result


def save_scraped_listings(
    store: PriceHistoryStore, listings: Iterable[RawListing], marketplace: str
) -> SaveResult:
    """Persist a scan's listings for one marketplace.

    A failure on one listing is logged, recorded in ``errors`` and does not
    stop the rest of the batch. Failing to resolve the competitor itself
    raises StorageError, since no listing could be saved without it.
    """
    listings = list(listings)
    logger.info("Saving %d %s listings", len(listings), marketplace)
    result = SaveResult()
    competitor = store.upsert_competitor(marketplace)

    for listing in listings:
        if not is_valid_listing(listing):
            logger.debug("Skipping invalid listing %r", listing.name)
            continue
        try:
            product_id = store.upsert_product(listing, competitor.id)
            store.append_or_update_price_point(product_id, PriceObservation.from_listing(listing))
            result.saved += 1
        except StorageError as e:
            logger.error("Error saving product %s: %s", listing.name, e)
            result.errors.append(f"Failed to save {listing.name}: {e}")

    return result


def backfill_all(store: PriceHistoryStore, days: int = 7) -> Dict[str, object]:
    """Backfill every product that has at least one stored price."""
    products = store.list_products()
    total_created = 0
    errors: List[str] = []

    for product in products:
        try:
            latest = store.get_latest_point(product.id)
            if latest is None:
                logger.info("Skipping %s - no price history", product.name)
                continue
            result = store.backfill(product.id, latest.price, days, currency=latest.currency)
        except StorageError as e:
            errors.append(f"Product {product.name}: {e}")
            continue
        total_created += result.created
        if result.errors:
            errors.append(f"Product {product.name}: {', '.join(result.errors)}")

    logger.info(
        "Backfill completed: %d products processed, %d history entries created",
        len(products),
        total_created,
    )
    return {
        "products_processed": len(products),
        "total_created": total_created,
        "errors": errors,
    }
