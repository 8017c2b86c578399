from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from tuckshop.models.stock_movement import MovementType
from tuckshop.schemas.movement import MovementResult
from tuckshop.services.errors import (
    ConflictError,
    InsufficientStockError,
    StockServiceError,
    StorageError,
    ValidationError,
)
from tuckshop.services.ledger import StockLedger
from tuckshop.utils.cache import cache_service

logger = logging.getLogger(__name__)


class MovementService:
    """
    Validates stock movements and applies them to the ledger.

    NON-NEGATIVE STOCK GUARANTEE:
    =============================
    A SALE must never take a product below zero, even when two sales for
    the same product arrive at the same time. The check and the append run
    in one transaction:

    1. SELECT stock_level ... FOR UPDATE (row lock on the product)
    2. Reject if current + change < 0 (rollback, nothing written)
    3. Append the movement and bump the aggregate
    4. Commit (releases the lock)

    A second sale blocks at step 1 until the first commits, then reads the
    decremented level. RECEIPT and ADJUSTMENT skip the lock; their
    aggregate update is a single atomic UPDATE.

    Only SALE is negated. ADJUSTMENT is always additive.
    """

    CACHE_PREFIX = "product"

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)

    @staticmethod
    def signed_quantity(movement_type: MovementType, quantity: int) -> int:
        """Apply the sign convention: sales remove stock, everything else adds."""
        if movement_type == MovementType.SALE:
            return -quantity
        return quantity

    def stage(self, product_id: int, movement_type, quantity: int) -> MovementResult:
        """
        Validate and append a movement without committing.

        The caller owns the transaction. Used directly by the catalog so a
        new product and its opening receipt commit together.

        Raises:
            ValidationError: Non-positive quantity or unknown movement type
            ProductNotFoundError: No active product with this ID
            InsufficientStockError: Sale larger than current stock
        """
        movement_type = self._coerce_type(movement_type)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")

        change = self.signed_quantity(movement_type, quantity)
        is_sale = movement_type == MovementType.SALE

        # Lock the row for sales; other movements only need the existence check
        current_stock = self.ledger.get_current_stock(product_id, lock=is_sale)

        if is_sale and current_stock + change < 0:
            raise InsufficientStockError(product_id, current_stock, quantity)

        movement = self.ledger.record_movement(product_id, movement_type, change)
        new_level = self.ledger.get_stock_level(product_id)

        return MovementResult(
            movement_id=movement.id,
            timestamp=movement.created_at,
            new_stock_level=new_level,
        )

    def validate_and_apply(self, product_id: int, movement_type, quantity: int) -> MovementResult:
        """
        Record a stock movement as one atomic unit.

        Args:
            product_id: Product whose stock changes
            movement_type: RECEIPT, SALE or ADJUSTMENT
            quantity: Positive quantity

        Returns:
            Movement ID, timestamp and the resulting stock level

        Raises:
            ValidationError, ProductNotFoundError, InsufficientStockError,
            StorageError
        """
        try:
            result = self.stage(product_id, movement_type, quantity)
            self.db.commit()
        except InsufficientStockError as e:
            self.db.rollback()
            logger.warning(f"Rejected sale for product #{product_id}: {e}")
            raise
        except StockServiceError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            # check_stock_level_non_negative rejected the aggregate update
            self.db.rollback()
            logger.error(f"Integrity error recording movement for product #{product_id}: {e}")
            raise ConflictError("Stock constraint violated - concurrent modification detected") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error recording movement for product #{product_id}: {e}")
            raise StorageError() from e

        cache_service.delete(self.CACHE_PREFIX, str(product_id))

        logger.info(
            f"Movement #{result.movement_id} ({self._coerce_type(movement_type).value} x{quantity}) "
            f"recorded for product #{product_id}, stock now {result.new_stock_level}"
        )
        return result

    @staticmethod
    def _coerce_type(movement_type) -> MovementType:
        try:
            return MovementType(movement_type)
        except ValueError:
            raise ValidationError(
                f"Invalid movement type: {movement_type!r}. "
                f"Expected one of {', '.join(t.value for t in MovementType)}"
            ) from None
