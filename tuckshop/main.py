from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from tuckshop.config import get_settings
from tuckshop.database import engine, Base, SessionLocal
from tuckshop.api import categories, health, movements, products
from tuckshop.services.category_service import CategoryService
from tuckshop.services.product_service import ProductService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info("Starting up application...")

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if settings.SEED_DEFAULT_CATEGORIES:
            CategoryService(db).seed_defaults(settings.DEFAULT_CATEGORIES)
        if settings.SEED_DEMO_PRODUCTS:
            ProductService(db).seed_demo()
    finally:
        db.close()

    logger.info("Database ready")

    yield

    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Stock management API for a school tuck shop.

    - **Catalog**: create, edit and retire products; list categories
    - **Stock Ledger**: every stock change is an append-only movement
      (RECEIPT, SALE, ADJUSTMENT); a product's stock level is the sum of its movements
    - **Oversell Protection**: sales are checked under a row lock and rejected
      with 409 when stock would go negative
    - **Caching**: product details are cached in Redis
    - **Background Tasks**: a Celery worker flags low stock after sales
    """,
    version="1.0.0",
    lifespan=lifespan
)

# No authentication: the API is open to every client
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(movements.router, prefix="/api/v1")
app.include_router(categories.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health"
    }
