from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime

from tuckshop.models.stock_movement import MovementType


class MovementCreate(BaseModel):
    """Schema for recording a stock movement."""
    product_id: int = Field(..., description="ID of the product whose stock changes")
    movement_type: MovementType = Field(..., description="RECEIPT, SALE or ADJUSTMENT")
    quantity: int = Field(..., ge=1, description="Positive quantity; sales are negated server-side")


class MovementResult(BaseModel):
    """Outcome of an accepted movement."""
    movement_id: int
    timestamp: datetime
    new_stock_level: int


class MovementResponse(BaseModel):
    """One entry of a product's stock ledger."""
    id: int
    product_id: int
    movement_type: MovementType
    quantity_change: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MovementListResponse(BaseModel):
    """Schema for paginated movement history."""
    items: list[MovementResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ReconciliationResponse(BaseModel):
    """Stored stock level compared against the movement ledger."""
    product_id: int
    stock_level: int
    ledger_total: int
    movement_count: int
    consistent: bool
