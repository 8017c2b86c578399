from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from tuckshop.database import Base


class MovementType(str, enum.Enum):
    """Kinds of stock movement."""
    RECEIPT = "RECEIPT"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"


class StockMovement(Base):
    """
    One append-only entry in a product's stock ledger.

    Attributes:
        id: Unique identifier for the movement
        product_id: Product whose stock changed
        movement_type: RECEIPT, SALE or ADJUSTMENT
        quantity_change: Signed change; negative for sales
        created_at: Timestamp when the movement was recorded
    """
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType, name="movement_type"), nullable=False)
    quantity_change = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", backref="movements")

    __table_args__ = (
        CheckConstraint('quantity_change <> 0', name='check_quantity_change_non_zero'),
    )

    def __repr__(self):
        return (
            f"<StockMovement(id={self.id}, product_id={self.product_id}, "
            f"type='{self.movement_type}', change={self.quantity_change})>"
        )
