from pydantic import BaseModel, ConfigDict


class CategoryResponse(BaseModel):
    """Schema for category response."""
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)
