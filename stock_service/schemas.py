"""
Pydantic schemas for request/response validation in the Stock service.

These schemas define the structure of data for API requests and responses.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, StrictInt, StrictStr, field_validator

# Largest value the 32-bit INTEGER quantity column holds
MAX_QUANTITY = 2**31 - 1

class StockItemBase(BaseModel):
    """Base schema with common stock item attributes."""
    sku: StrictStr = Field(..., min_length=1, description="SKU must not be empty")
    store: StrictStr = Field(..., min_length=1, description="Store must not be empty")
    quantity: StrictInt = Field(..., ge=0, le=MAX_QUANTITY, description="Quantity must be a non-negative integer")
    description: Optional[StrictStr] = None

class StockItemCreate(StockItemBase):
    """Schema for one record of a batch insert. Unknown keys are ignored."""
    pass

class StockItemUpdate(BaseModel):
    """
    Schema for a partial update of an existing stock item.

    Both fields are optional. Which fields were actually sent is kept in
    ``model_fields_set``, so an omitted ``description`` (leave untouched) and
    an explicit ``"description": null`` (clear it) stay distinguishable.
    """
    quantity: Optional[StrictInt] = Field(default=None, ge=0, le=MAX_QUANTITY, description="Quantity must be a non-negative integer")
    description: Optional[StrictStr] = None

    class Config:
        extra = "forbid"

    @field_validator("quantity")
    @classmethod
    def quantity_not_null(cls, value):
        if value is None:
            raise ValueError("Quantity must not be null")
        return value

class StockItem(StockItemBase):
    """
    Schema for stock item responses.

    Attributes:
        sku (str): Stock Keeping Unit
        store (str): Owning store
        quantity (int): Quantity available
        description (str): Optional description, null when unset
    """
    quantity: int

    class Config:
        from_attributes = True

class RecordError(BaseModel):
    """
    A rejected input record and what was wrong with it.

    ``issues`` has the shape ``{"formErrors": [...], "fieldErrors": {field: [...]}}``.
    """
    input: Any
    issues: Dict[str, Any]

class ValidationFailure(BaseModel):
    """Response body returned when a batch insert is rejected."""
    message: str
    details: List[RecordError]
