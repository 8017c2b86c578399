from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tuckshop.database import Base
from tuckshop.models.category import Category


class Product(Base):
    """
    Product model representing an item stocked by the tuck shop.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        description: Optional free-text description
        price: Unit price (non-negative)
        category_id: Owning category
        stock_level: Sum of all stock movements for this product. Only the
            stock ledger writes this column.
        low_stock_threshold: Level at or below which the product counts as low on stock
        is_active: False once the product has been retired
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    stock_level = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship(Category, lazy="joined", innerjoin=True)

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('stock_level >= 0', name='check_stock_level_non_negative'),
        CheckConstraint('low_stock_threshold > 0', name='check_low_stock_threshold_positive'),
    )

    @property
    def category_name(self):
        return self.category.name if self.category else None

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock_level={self.stock_level})>"
