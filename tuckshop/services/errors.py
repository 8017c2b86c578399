"""
Domain errors raised by the stock services.

Routers translate each family to its own HTTP status so a client can tell
bad input apart from an oversell or an unavailable database.
"""
from typing import Optional


class StockServiceError(Exception):
    """Base class for all service-level errors."""
    pass


class ValidationError(StockServiceError):
    """Required input missing or malformed. Raised before any write."""
    pass


class NotFoundError(StockServiceError):
    """Referenced entity does not exist (or has been retired)."""
    pass


class ProductNotFoundError(NotFoundError):
    """Exception raised when the requested product doesn't exist."""

    def __init__(self, product_id: int, message: Optional[str] = None):
        self.product_id = product_id
        super().__init__(message or f"Product with ID {product_id} not found")


class ConflictError(StockServiceError):
    """Request conflicts with current stock state."""
    pass


class InsufficientStockError(ConflictError):
    """Exception raised when a sale would drive stock below zero."""

    def __init__(self, product_id: int, current_stock: int, requested: int):
        self.product_id = product_id
        self.current_stock = current_stock
        self.requested = requested
        super().__init__(
            f"Insufficient stock. Current stock: {current_stock}, Requested: {requested}"
        )


class ReferentialError(StockServiceError):
    """A reference points at a row that does not exist."""
    pass


class CategoryNotFoundError(ReferentialError):
    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Invalid category ID: {category_id}")


class StorageError(StockServiceError):
    """Underlying persistence failure. The message never carries driver detail."""

    def __init__(self, message: str = "Storage unavailable, please retry later"):
        super().__init__(message)
