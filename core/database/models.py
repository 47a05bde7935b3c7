# This file defines the database schema for the price monitor using SQLAlchemy's Object Relational Mapper (ORM)
# It stores the competitors we watch, the products they list and a per-day price history for each product

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
import uuid

from core.listings import default_currency, utcnow

# Create a base class for all ORM models
# It provides the metadata that SQLAlchemy needs to map Python classes to database tables
Base = declarative_base()


class Competitor(Base):
    """A marketplace whose catalog we scrape (one row per marketplace)."""

    __tablename__ = "competitors"

    # String UUIDs for broader database compatibility
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)

    # "medsgo", "watsons", ... - the natural key competitors are upserted on
    marketplace = Column(String(50), nullable=False, unique=True, index=True)

    base_url = Column(String(512), nullable=True)
    category_url = Column(String(1024), nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    products = relationship("Product", back_populates="competitor")


class Product(Base):
    """A competitor product, identified by the URL of its product page.

    The URL is the stable natural key: rescanning the same page always
    resolves to the same product row.
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    competitor_id = Column(String(36), ForeignKey("competitors.id"), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    brand = Column(String(255), nullable=True)
    dosage = Column(String(50), nullable=True)
    url = Column(String(1024), nullable=False, unique=True)

    # The scraper's own identifier for the listing, when it has one
    external_id = Column(String(255), nullable=True)
    image_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    competitor = relationship("Competitor", back_populates="products")
    price_history = relationship(
        "PriceHistory",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="PriceHistory.scraped_at.desc()",
    )


class PriceHistory(Base):
    """One price observation per product per calendar day.

    A rescan on the same day overwrites the day's row instead of adding a
    new one; the unique constraint below backs that rule in the database.
    """

    __tablename__ = "price_history"
    __table_args__ = (
        UniqueConstraint("product_id", "scraped_date", name="uq_price_history_product_day"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)
    discount_percent = Column(Integer, nullable=True)
    currency = Column(String(8), nullable=False, default=default_currency)
    in_stock = Column(Boolean, nullable=False, default=True)

    # Naive UTC timestamp of the observation; indexed for newest-first reads
    scraped_at = Column(DateTime, nullable=False, index=True)

    # UTC calendar day of scraped_at - the deduplication key
    scraped_date = Column(Date, nullable=False)

    # Backfilled demo points are not real observations
    is_synthetic = Column(Boolean, nullable=False, default=False)

    product = relationship("Product", back_populates="price_history")
