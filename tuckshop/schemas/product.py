from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Prices are stored as NUMERIC(10, 2) and rendered as plain JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ProductCreate(BaseModel):
    """Schema for creating a new product."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Optional product description")
    price: Money = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price (non-negative)")
    category_id: int = Field(..., description="ID of an existing category")
    initial_stock: int = Field(0, ge=0, description="Quantity received on creation")
    low_stock_threshold: int = Field(5, gt=0, description="Low stock warning level")

    model_config = ConfigDict(str_strip_whitespace=True)


class ProductUpdate(BaseModel):
    """
    Schema for a sparse product update.

    Only the fields present in the request are applied. Stock level is not
    part of this schema; it only changes through stock movements.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: Optional[Money] = Field(None, ge=0, max_digits=10, decimal_places=2, description="Unit price")
    category_id: Optional[int] = Field(None, description="ID of an existing category")
    low_stock_threshold: Optional[int] = Field(None, gt=0, description="Low stock warning level")
    is_active: Optional[bool] = Field(None, description="Set to false to retire the product")

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ProductSummary(BaseModel):
    """Returned by create and update."""
    id: int
    name: str
    stock_level: int

    model_config = ConfigDict(from_attributes=True)


class ProductListItem(BaseModel):
    """One row of the active product listing."""
    id: int
    name: str
    price: Money
    stock_level: int
    low_stock_threshold: int
    category_name: str

    model_config = ConfigDict(from_attributes=True)


class ProductDetail(ProductListItem):
    """Full product view including description and status."""
    description: Optional[str] = None
    is_active: bool
