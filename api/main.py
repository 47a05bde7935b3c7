from fastapi import FastAPI, Depends, HTTPException, status, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from functools import lru_cache
from typing import Generator, List, Optional
import logging
import sqlalchemy.exc

from config.settings import get_settings
from core.comparison.aggregator import AlertThresholds, ComparisonAggregator
from core.database.operations import Database, PriceHistoryStore, backfill_all
from core.errors import ScrapeError, StorageError
from core.forecast.advisor import forecast_for_product
from core.listings import RawListing
from core.scan import run_scan
from core.scrapers.scraper_factory import ScraperFactory

from .models import (
    BackfillRequest,
    BackfillResponse,
    CompareRequest,
    CompareResponse,
    ForecastResponse,
    HistoryResponse,
    MarketplaceScanOut,
    PricePoint,
    ProductInfo,
    ScanRequest,
    ScanResponse,
)

logger = logging.getLogger("pricing-api")

settings = get_settings()

app = FastAPI(
    title="Pricing Radar API",
    description="REST API for monitoring competitor pharmacy prices",
    version=settings.PROJECT_VERSION,
)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_database() -> Database:
    """The application's database handle, created on first use."""
    return Database(get_settings().DATABASE_URL)


def get_store(database: Database = Depends(get_database)) -> Generator[PriceHistoryStore, None, None]:
    with database.store() as store:
        yield store


def _product_or_404(store: PriceHistoryStore, product_id: str):
    product = store.get_product(product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID {product_id} not found",
        )
    return product


@app.get("/", tags=["General"])
async def root():
    """Root endpoint providing API information."""
    return {
        "name": "Pricing Radar API",
        "version": settings.PROJECT_VERSION,
        "description": "API for comparing pharmacy prices across competitor marketplaces",
        "endpoints": {
            "GET /": "This information",
            "POST /scan": "Scrape competitor catalogs and compare them",
            "POST /compare": "Compare posted listings without saving them",
            "GET /products": "Get stored competitor products",
            "GET /products/{product_id}/history": "Get a product's price history",
            "GET /products/{product_id}/forecast": "Get a suggested price for a product",
            "POST /backfill": "Fill in demo price history for every product",
        },
    }


@app.post("/scan", response_model=ScanResponse, tags=["Data Collection"])
def scan_marketplaces(request: ScanRequest, store: PriceHistoryStore = Depends(get_store)):
    """Scrape the selected marketplaces, optionally save the results, and compare them."""
    scrapers = ScraperFactory.create_scrapers(request.marketplace, static=request.static)
    result = run_scan(
        scrapers,
        store=store if request.save_to_db else None,
        thresholds=AlertThresholds.from_settings(),
    )

    if not result.success:
        errors = [error for scan in result.results for error in scan.errors]
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "; ".join(errors) or "No products found"},
        )

    return ScanResponse(
        success=True,
        results=[
            MarketplaceScanOut(**scan.to_dict(include_products=request.include_products))
            for scan in result.results
        ],
        total_products=result.total_products,
        total_duration=round(result.total_duration, 3),
        comparison=CompareResponse(**result.report.to_dict()),
        message=f"Successfully scraped {result.total_products} products",
    )


@app.post("/compare", response_model=CompareResponse, tags=["Comparison"])
async def compare_listings(request: CompareRequest):
    """Compare posted listings by ingredient and dosage, with alerts and market stats."""
    listings = [RawListing.from_dict(listing.model_dump()) for listing in request.listings]
    aggregator = ComparisonAggregator(AlertThresholds.from_settings())
    report = aggregator.summarize(listings, source_a=request.source_a, source_b=request.source_b)
    return CompareResponse(**report.to_dict())


@app.get("/products", response_model=List[ProductInfo], tags=["Products"])
def get_products(
    marketplace: Optional[str] = None,
    store: PriceHistoryStore = Depends(get_store),
):
    """Get stored products, optionally only those of one marketplace."""
    return [ProductInfo.model_validate(product) for product in store.list_products(marketplace)]


@app.get("/products/{product_id}/history", response_model=HistoryResponse, tags=["Products"])
def get_product_history(
    product_id: str,
    limit: int = Query(settings.HISTORY_LIMIT, ge=1, le=365),
    store: PriceHistoryStore = Depends(get_store),
):
    """Get a product's price history, most recent first."""
    _product_or_404(store, product_id)
    points = store.get_history(product_id, limit=limit)
    return HistoryResponse(
        product_id=product_id,
        count=len(points),
        history=[PricePoint.model_validate(point) for point in points],
    )


@app.get("/products/{product_id}/forecast", response_model=ForecastResponse, tags=["Products"])
def get_product_forecast(
    product_id: str,
    our_price: float = Query(..., gt=0),
    target_variance: float = Query(settings.FORECAST_TARGET_VARIANCE, ge=0, le=1),
    store: PriceHistoryStore = Depends(get_store),
):
    """Suggest a price for our product from the competitor product's history."""
    _product_or_404(store, product_id)
    suggestion = forecast_for_product(
        store,
        product_id,
        our_price,
        target_variance=target_variance,
        limit=settings.HISTORY_LIMIT,
    )
    return ForecastResponse(product_id=product_id, our_price=our_price, **suggestion.to_dict())


@app.post("/backfill", response_model=BackfillResponse, tags=["Products"])
def backfill_history(request: BackfillRequest, store: PriceHistoryStore = Depends(get_store)):
    """Synthesize demo history for every product that has a stored price."""
    return BackfillResponse(**backfill_all(store, days=request.days))


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(_request, exc):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(ScrapeError)
async def scrape_exception_handler(_request, exc):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": f"Error accessing marketplace: {str(exc)}"},
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(_request, exc):
    logger.error("Storage error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Database error: {str(exc)}"},
    )


@app.exception_handler(sqlalchemy.exc.SQLAlchemyError)
async def database_exception_handler(_request, exc):
    logger.error("Database error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Database error: {str(exc)}"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(_request, exc):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Unexpected error: {str(exc)}"},
    )


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
