"""
Product Schemas for Butcher Bot
===============================

- GET /products: Public catalog listing
- PATCH /staff/products/{id}/stock: Toggle a product's stock flag
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    description: Optional[str] = None
    category: str
    price: Decimal
    unit: str
    in_stock: bool = Field(alias="inStock")


class StockUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    in_stock: bool = Field(alias="inStock")
