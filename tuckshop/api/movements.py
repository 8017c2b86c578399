import logging

from fastapi import APIRouter, Depends, status
from kombu.exceptions import OperationalError
from sqlalchemy.orm import Session

from tuckshop.api.errors import http_error
from tuckshop.database import get_db
from tuckshop.models.stock_movement import MovementType
from tuckshop.schemas.movement import MovementCreate, MovementResult
from tuckshop.services.errors import StockServiceError
from tuckshop.services.movement_service import MovementService
from tuckshop.tasks.stock_tasks import check_low_stock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.post(
    "/movements",
    response_model=MovementResult,
    status_code=status.HTTP_201_CREATED,
    summary="Record a stock movement",
    description="""
    Record a RECEIPT, SALE or ADJUSTMENT against a product.

    **Oversell protection:**
    Sales lock the product row (SELECT FOR UPDATE) before checking stock.
    When two sales race for the same units:
    - Only one transaction succeeds
    - The other receives a 409 error with an 'Insufficient stock' message

    After a sale, a background Celery task checks the product against its
    low stock threshold.
    """
)
def record_movement(
    movement_data: MovementCreate,
    db: Session = Depends(get_db)
):
    """
    Record a stock movement.

    - **product_id**: Active product (required)
    - **movement_type**: RECEIPT, SALE or ADJUSTMENT (required)
    - **quantity**: Positive quantity; a SALE removes it, the others add it (required)
    """
    service = MovementService(db)

    try:
        result = service.validate_and_apply(
            movement_data.product_id,
            movement_data.movement_type,
            movement_data.quantity,
        )
    except StockServiceError as e:
        raise http_error(e)

    if movement_data.movement_type == MovementType.SALE:
        try:
            check_low_stock.delay(movement_data.product_id)
        except OperationalError as e:
            # The movement is committed; a missed alert must not fail the sale
            logger.warning(f"Could not enqueue low stock check for product #{movement_data.product_id}: {e}")

    return result
