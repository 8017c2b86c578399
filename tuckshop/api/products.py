from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tuckshop.api.errors import http_error
from tuckshop.database import get_db
from tuckshop.services.errors import StockServiceError
from tuckshop.services.ledger import StockLedger
from tuckshop.services.product_service import ProductService
from tuckshop.schemas.movement import (
    MovementListResponse,
    MovementResponse,
    ReconciliationResponse,
)
from tuckshop.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductListItem,
    ProductSummary,
    ProductUpdate,
)

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "/",
    response_model=list[ProductListItem],
    summary="List active products",
    description="All active products with their category name, ordered by name."
)
def list_products(db: Session = Depends(get_db)):
    """Get all active products."""
    service = ProductService(db)
    try:
        products = service.list_active()
    except StockServiceError as e:
        raise http_error(e)
    return [ProductListItem.model_validate(p) for p in products]


@router.get(
    "/low-stock",
    response_model=list[ProductListItem],
    summary="List low stock products",
    description="Active products whose stock level is at or below their low stock threshold."
)
def list_low_stock_products(db: Session = Depends(get_db)):
    service = ProductService(db)
    try:
        products = service.list_low_stock()
    except StockServiceError as e:
        raise http_error(e)
    return [ProductListItem.model_validate(p) for p in products]


@router.post(
    "/",
    response_model=ProductSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product, optionally receiving its opening stock."
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new product.

    - **name**: Product name (required)
    - **price**: Unit price, must be non-negative (required)
    - **category_id**: Existing category (required)
    - **initial_stock**: Opening stock, recorded as a RECEIPT movement (optional)
    - **low_stock_threshold**: Defaults to 5 (optional)
    """
    service = ProductService(db)
    try:
        return service.create(product_data)
    except StockServiceError as e:
        raise http_error(e)


@router.get(
    "/{product_id}",
    response_model=ProductDetail,
    summary="Get product by ID",
    description="Get an active product. Results are cached in Redis."
)
def get_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """
    Get a product by ID.

    Retired products are reported as not found.
    """
    service = ProductService(db)
    try:
        return service.get(product_id)
    except StockServiceError as e:
        raise http_error(e)


@router.put(
    "/{product_id}",
    response_model=ProductSummary,
    summary="Update a product",
    description="Update product details. Only provided fields will be updated."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Stock level cannot be set here; record a stock movement instead.
    """
    service = ProductService(db)
    try:
        return service.update(product_id, product_data)
    except StockServiceError as e:
        raise http_error(e)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Retire a product",
    description="Mark a product inactive. Its stock history is kept."
)
def retire_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    """Retire a product."""
    service = ProductService(db)
    try:
        service.retire(product_id)
    except StockServiceError as e:
        raise http_error(e)

    return None


@router.get(
    "/{product_id}/movements",
    response_model=MovementListResponse,
    summary="Product stock history",
    description="Paginated stock movements for a product, newest first."
)
def list_product_movements(
    product_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db)
):
    ledger = StockLedger(db)
    try:
        movements, total, total_pages = ledger.list_movements(product_id, page, page_size)
    except StockServiceError as e:
        raise http_error(e)

    return MovementListResponse(
        items=[MovementResponse.model_validate(m) for m in movements],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{product_id}/reconciliation",
    response_model=ReconciliationResponse,
    summary="Reconcile stock level",
    description="Compare the stored stock level with the sum of the product's movements."
)
def reconcile_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    ledger = StockLedger(db)
    try:
        report = ledger.reconcile(product_id)
    except StockServiceError as e:
        raise http_error(e)

    return ReconciliationResponse(
        product_id=report.product_id,
        stock_level=report.stock_level,
        ledger_total=report.ledger_total,
        movement_count=report.movement_count,
        consistent=report.consistent,
    )
