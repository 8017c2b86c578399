from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from decimal import Decimal
from typing import List
import logging

from tuckshop.models.product import Product
from tuckshop.models.stock_movement import MovementType
from tuckshop.schemas.product import ProductCreate, ProductDetail, ProductUpdate
from tuckshop.services.category_service import CategoryService
from tuckshop.services.errors import (
    CategoryNotFoundError,
    ProductNotFoundError,
    ReferentialError,
    StockServiceError,
    StorageError,
    ValidationError,
)
from tuckshop.services.ledger import StockLedger
from tuckshop.services.movement_service import MovementService
from tuckshop.utils.cache import cache_service

logger = logging.getLogger(__name__)

# Columns that a patch may not set to null
NON_NULLABLE_FIELDS = ("name", "price", "category_id", "low_stock_threshold", "is_active")

# Detail fields kept in Redis; stock_level and is_active are always read live
CACHED_FIELDS = {"id", "name", "description", "price", "low_stock_threshold", "category_name"}

# Sample catalog matching the default categories, each with its opening stock
DEMO_PRODUCTS = [
    ("Lays Salted Chips", "Classic salted potato chips, 125g", "15.00", "Snacks", 10, 50),
    ("Coke Zero 500ml", "Sugar-free cola soft drink", "12.00", "Beverages", 24, 100),
    ("Blue Ballpoint Pen", "Standard blue biro pen", "5.00", "School Supplies", 50, 200),
    ("Bar One", "Choc bar with caramel and nougat", "11.00", "Confectionery", 20, 48),
]


class ProductService:
    """
    Service class for the product catalog.

    This service handles:
    - Creating products (with an optional opening stock receipt)
    - Sparse updates
    - Retirement (soft delete)
    - Reads: single product (cached), active listing, low-stock listing

    Stock levels are never written here; they only change through
    MovementService.
    """

    CACHE_PREFIX = "product"

    def __init__(self, db: Session):
        self.db = db
        self.categories = CategoryService(db)
        self.ledger = StockLedger(db)

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        The product row and its opening RECEIPT commit in one transaction,
        so a failure leaves neither behind.

        Args:
            product_data: Product creation data

        Returns:
            Created product with its resolved stock level

        Raises:
            CategoryNotFoundError: category_id does not reference a category
        """
        try:
            if not self.categories.exists(product_data.category_id):
                raise CategoryNotFoundError(product_data.category_id)

            product = Product(
                name=product_data.name,
                description=product_data.description,
                price=product_data.price,
                category_id=product_data.category_id,
                low_stock_threshold=product_data.low_stock_threshold,
                stock_level=0,
                is_active=True,
            )
            self.db.add(product)
            self.db.flush()

            if product_data.initial_stock > 0:
                MovementService(self.db).stage(
                    product.id, MovementType.RECEIPT, product_data.initial_stock
                )

            self.db.commit()
        except StockServiceError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error creating product: {e}")
            raise ReferentialError(f"Invalid category ID: {product_data.category_id}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating product: {e}")
            raise StorageError() from e

        self.db.refresh(product)
        logger.info(
            f"Product #{product.id} '{product.name}' created with stock {product.stock_level}"
        )
        return product

    def update(self, product_id: int, product_data: ProductUpdate) -> Product:
        """
        Apply a sparse update to a product.

        Only fields present in the request are written. Retired products
        can still be edited.

        Raises:
            ValidationError: Empty patch, or null for a required field
            ProductNotFoundError: Unknown product ID
            CategoryNotFoundError: category_id does not reference a category
        """
        update_data = product_data.model_dump(exclude_unset=True)

        if not update_data:
            raise ValidationError("No fields supplied for update")

        null_fields = [f for f in NON_NULLABLE_FIELDS if f in update_data and update_data[f] is None]
        if null_fields:
            raise ValidationError(f"Fields cannot be null: {', '.join(null_fields)}")

        try:
            product = self.db.query(Product).filter(Product.id == product_id).first()

            if not product:
                raise ProductNotFoundError(product_id)

            if "category_id" in update_data and not self.categories.exists(update_data["category_id"]):
                raise CategoryNotFoundError(update_data["category_id"])

            for field, value in update_data.items():
                setattr(product, field, value)

            self.db.commit()
        except StockServiceError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error updating product #{product_id}: {e}")
            raise ReferentialError("Invalid category ID provided for update") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating product #{product_id}: {e}")
            raise StorageError() from e

        self.db.refresh(product)
        self._invalidate_cache(product_id)

        logger.info(f"Product #{product_id} updated: {', '.join(sorted(update_data))}")
        return product

    def retire(self, product_id: int) -> Product:
        """
        Retire a product (is_active = False).

        The row and its movement history are kept.
        """
        return self.update(product_id, ProductUpdate(is_active=False))

    def get(self, product_id: int) -> ProductDetail:
        """
        Get an active product by ID with caching.

        Catalog fields come from Redis when cached. The stock level and the
        active flag are read from the database on every call.

        Raises:
            ProductNotFoundError: Unknown or retired product
        """
        try:
            stock_level = self.ledger.get_current_stock(product_id)

            cached = cache_service.get(self.CACHE_PREFIX, str(product_id))
            if cached:
                return ProductDetail.model_validate(
                    {**cached, "stock_level": stock_level, "is_active": True}
                )

            product = (
                self.db.query(Product)
                .filter(Product.id == product_id, Product.is_active.is_(True))
                .first()
            )
        except ProductNotFoundError:
            product = None
        except SQLAlchemyError as e:
            logger.error(f"Error loading product #{product_id}: {e}")
            raise StorageError() from e

        if not product:
            raise ProductNotFoundError(
                product_id, f"Product with ID {product_id} not found or is inactive"
            )

        detail = ProductDetail.model_validate(product)
        cache_service.set(
            self.CACHE_PREFIX,
            str(product_id),
            detail.model_dump(mode="json", include=CACHED_FIELDS),
        )
        return detail

    def list_active(self) -> List[Product]:
        """Active products ordered by name."""
        try:
            return (
                self.db.query(Product)
                .filter(Product.is_active.is_(True))
                .order_by(Product.name)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error listing products: {e}")
            raise StorageError() from e

    def list_low_stock(self) -> List[Product]:
        """Active products at or below their low stock threshold, ordered by name."""
        try:
            return (
                self.db.query(Product)
                .filter(
                    Product.is_active.is_(True),
                    Product.stock_level <= Product.low_stock_threshold,
                )
                .order_by(Product.name)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error listing low stock products: {e}")
            raise StorageError() from e

    def seed_demo(self) -> int:
        """
        Create the sample catalog if there are no products yet.

        Each product goes through create(), so its opening stock is a
        RECEIPT movement like any other.

        Returns:
            Number of products created
        """
        if self.db.query(Product.id).first() is not None:
            return 0

        category_ids = {c.name: c.id for c in self.categories.list_all()}
        created = 0
        for name, description, price, category, threshold, opening_stock in DEMO_PRODUCTS:
            if category not in category_ids:
                logger.warning(f"Skipping demo product '{name}': no category '{category}'")
                continue
            self.create(ProductCreate(
                name=name,
                description=description,
                price=Decimal(price),
                category_id=category_ids[category],
                initial_stock=opening_stock,
                low_stock_threshold=threshold,
            ))
            created += 1

        logger.info(f"Seeded {created} demo products")
        return created

    def _invalidate_cache(self, product_id: int) -> None:
        """Invalidate cache for a product."""
        cache_service.delete(self.CACHE_PREFIX, str(product_id))
