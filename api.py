"""
Product Relevance Engine — FastAPI Application Layer

Endpoints:
  1. POST /recommend              — Price filter + weighted ranking
  2. GET  /categories             — Active scoring categories
  3. POST /diagnostics/validation — Why catalog records fail validation
  4. GET  /health                 — Health check
"""
from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from category_processors import ProcessorRegistry, build_registry
from config import Settings, configure_logging, get_settings
from device_catalog import CatalogLoadError, DeviceCatalog, match_scraped_products
from models import (
    BudgetInfo, CategoryWeights, FailureReport, ScoredProduct, ScrapedProduct,
)
from price_filter import PriceFilterOptions, apply_product_filters
from processor_diagnostics import analyze_processor_failures
from scoring_engine import score_and_rank_products

logger = logging.getLogger(__name__)

# ============================================================
# Application State (shared singletons)
# ============================================================

class AppState:
    """Holds all shared service instances."""
    settings: Settings
    catalog: DeviceCatalog
    registry: ProcessorRegistry
    start_time: float
    request_count: int = 0

    def __init__(self):
        self.start_time = time.monotonic()
        self.request_count = 0


_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and the device catalog on startup."""
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting Product Relevance Engine...")

    _state.settings = settings
    _state.registry = build_registry()
    _state.catalog = DeviceCatalog(settings.catalog_path)
    try:
        _state.catalog.get_device_list()
    except CatalogLoadError:
        # /health reports it; /recommend retries the load per request
        logger.exception("Device catalog unavailable at startup")

    logger.info(f"System ready. Environment: {settings.environment}")
    yield
    logger.info("Shutting down Product Relevance Engine...")


# ============================================================
# Request/Response Models (API-specific)
# ============================================================

class RecommendRequest(BaseModel):
    weights: CategoryWeights
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    budget_info: Optional[BudgetInfo] = None
    top_n: Optional[int] = Field(default=None, ge=1, le=200)
    # Storefront search results; when given, only catalog devices they match are ranked
    listings: Optional[list[ScrapedProduct]] = None


class RecommendResponse(BaseModel):
    id: str
    products: list[ScoredProduct]
    candidates: int
    response_time_ms: int = 0


class CategoryInfo(BaseModel):
    name: str
    weighted: bool


class HealthResponse(BaseModel):
    status: str
    catalog_loaded: bool
    catalog_size: int
    uptime_seconds: int
    request_count: int


# ============================================================
# FastAPI App
# ============================================================

app = FastAPI(
    title="Product Relevance Engine API",
    description="Ranks smartphones by user-priority weighted spec scores.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.monotonic()
    _state.request_count += 1
    response = await call_next(request)
    elapsed = int((time.monotonic() - start) * 1000)
    response.headers["X-Response-Time-Ms"] = str(elapsed)
    return response


def _catalog_or_503():
    try:
        return _state.catalog.get_device_list()
    except CatalogLoadError as e:
        raise HTTPException(503, f"Device catalog unavailable: {e}")


# ============================================================
# 1. POST /recommend
# ============================================================

@app.post("/recommend", response_model=RecommendResponse, tags=["Recommendations"])
def recommend_products(request: RecommendRequest):
    """
    Rank catalog devices inside the price window by the supplied weights.
    The window is [min_price, max(max_price, budget + extension)].
    With `listings`, devices are first matched to those storefront titles.
    """
    if not request.max_price:
        raise HTTPException(400, "max_price is required")
    if request.min_price is not None and request.min_price > request.max_price:
        raise HTTPException(400, "min_price must not exceed max_price")

    start = time.monotonic()
    devices = _catalog_or_503()
    settings = _state.settings

    try:
        if request.listings is not None:
            devices = match_scraped_products(
                request.listings, devices, threshold=settings.match_threshold)

        options = PriceFilterOptions(
            min_price=request.min_price,
            max_price=request.max_price,
            budget_info=request.budget_info,
            buffer_threshold=settings.price_buffer_threshold,
            buffer_low=settings.price_buffer_low,
            buffer_high=settings.price_buffer_high,
        )
        candidates = apply_product_filters(devices, options)
        products = score_and_rank_products(
            candidates,
            request.weights,
            top_n=request.top_n or settings.default_top_n,
            registry=_state.registry,
        )
    except Exception as e:
        logger.exception("Recommendation failed")
        raise HTTPException(500, f"Recommendation error: {str(e)}")

    elapsed = int((time.monotonic() - start) * 1000)
    logger.info(
        f"[recommend] candidates={len(candidates)} "
        f"results={len(products)} time={elapsed}ms")

    return RecommendResponse(
        id=str(uuid4()),
        products=products,
        candidates=len(candidates),
        response_time_ms=elapsed,
    )


# ============================================================
# 2. GET /categories
# ============================================================

@app.get("/categories", response_model=list[CategoryInfo], tags=["Reference"])
def list_categories():
    return [CategoryInfo(name=p.category_name, weighted=p.weighted) for p in _state.registry]


# ============================================================
# 3. POST /diagnostics/validation
# ============================================================

@app.post("/diagnostics/validation", response_model=FailureReport, tags=["Diagnostics"])
def validation_report():
    """Group catalog validation failures by processor and offending value."""
    devices = _catalog_or_503()
    return analyze_processor_failures(devices, _state.registry)


# ============================================================
# 4. GET /health
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
def health():
    loaded = _state.catalog.loaded
    return HealthResponse(
        status="ok" if loaded else "degraded",
        catalog_loaded=loaded,
        catalog_size=len(_state.catalog) if loaded else 0,
        uptime_seconds=int(time.monotonic() - _state.start_time),
        request_count=_state.request_count,
    )


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run("api:app", host=_settings.host, port=_settings.port,
                reload=_settings.reload, log_level=_settings.log_level.lower())
