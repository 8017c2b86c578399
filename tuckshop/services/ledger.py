from sqlalchemy.orm import Session
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from typing import List, NamedTuple, Tuple
import logging
import math

from tuckshop.models.product import Product
from tuckshop.models.stock_movement import MovementType, StockMovement
from tuckshop.services.errors import ProductNotFoundError, StorageError

logger = logging.getLogger(__name__)


class Reconciliation(NamedTuple):
    product_id: int
    stock_level: int
    ledger_total: int
    movement_count: int

    @property
    def consistent(self) -> bool:
        return self.stock_level == self.ledger_total


class StockLedger:
    """
    Append-only movement log plus the derived per-product stock level.

    The ledger never commits. Callers own the transaction, so an append and
    the aggregate update it causes become visible together or not at all.

    AGGREGATE MAINTENANCE:
    ======================
    Every append is followed, in the same transaction, by

        UPDATE products SET stock_level = stock_level + :change WHERE id = :id

    The update is evaluated by the database against the current row and
    takes the row lock itself, so concurrent receipts never lose an
    increment. Sales additionally read the level with SELECT ... FOR UPDATE
    before deciding (see get_current_stock), which serializes competing
    sales on the same product.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_current_stock(self, product_id: int, lock: bool = False) -> int:
        """
        Read the stock level of an active product.

        Args:
            product_id: Product to read
            lock: Take a row lock (SELECT ... FOR UPDATE) held until the
                surrounding transaction ends

        Raises:
            ProductNotFoundError: No active product with this ID
        """
        query = self.db.query(Product.stock_level).filter(
            Product.id == product_id,
            Product.is_active.is_(True),
        )
        if lock:
            query = query.with_for_update()

        row = query.first()
        if row is None:
            raise ProductNotFoundError(product_id)
        return row.stock_level

    def get_stock_level(self, product_id: int) -> int:
        """Unlocked read of the aggregate, regardless of product status."""
        level = (
            self.db.query(Product.stock_level)
            .filter(Product.id == product_id)
            .scalar()
        )
        if level is None:
            raise ProductNotFoundError(product_id)
        return level

    def record_movement(
        self,
        product_id: int,
        movement_type: MovementType,
        signed_quantity: int,
    ) -> StockMovement:
        """
        Append one movement and apply it to the product's stock level.

        Args:
            product_id: Product whose stock changes
            movement_type: Kind of movement
            signed_quantity: Already sign-normalized change

        Returns:
            The flushed movement, with its generated ID and timestamp loaded
        """
        movement = StockMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity_change=signed_quantity,
        )
        self.db.add(movement)
        self.db.flush()

        self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_level=Product.stock_level + signed_quantity)
            .execution_options(synchronize_session="fetch")
        )
        self.db.refresh(movement)

        return movement

    def list_movements(
        self,
        product_id: int,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[StockMovement], int, int]:
        """
        Get a product's movement history, newest first.

        Works for retired products too; their history is kept.

        Returns:
            Tuple of (movements list, total count, total pages)
        """
        try:
            self._ensure_exists(product_id)

            query = self.db.query(StockMovement).filter(StockMovement.product_id == product_id)

            total = query.count()
            total_pages = math.ceil(total / page_size) if total > 0 else 1

            offset = (page - 1) * page_size
            movements = (
                query.order_by(StockMovement.id.desc())
                .offset(offset)
                .limit(page_size)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error reading movements for product #{product_id}: {e}")
            raise StorageError() from e

        return movements, total, total_pages

    def reconcile(self, product_id: int) -> Reconciliation:
        """Compare the stored stock level with the sum of the movement log."""
        try:
            stock_level = self.get_stock_level(product_id)

            ledger_total, movement_count = (
                self.db.query(
                    func.coalesce(func.sum(StockMovement.quantity_change), 0),
                    func.count(StockMovement.id),
                )
                .filter(StockMovement.product_id == product_id)
                .one()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error reconciling product #{product_id}: {e}")
            raise StorageError() from e

        reconciliation = Reconciliation(
            product_id=product_id,
            stock_level=stock_level,
            ledger_total=int(ledger_total),
            movement_count=movement_count,
        )
        if not reconciliation.consistent:
            logger.error(
                f"Stock level drift on product #{product_id}: "
                f"stored {stock_level}, ledger {reconciliation.ledger_total}"
            )
        return reconciliation

    def _ensure_exists(self, product_id: int) -> None:
        exists = self.db.query(Product.id).filter(Product.id == product_id).first()
        if exists is None:
            raise ProductNotFoundError(product_id)
